"""Prefect wrappers around the Prefect-free pipeline in leadcrm."""
