from prefect.client.schemas.schedules import CronSchedule

from flows.bulk_enrichment_flow import bulk_enrichment
from flows.lead_discovery_flow import lead_discovery


if __name__ == "__main__":
    """
    Register the scheduled lead flows.

    Usage:
        PYTHONPATH=. python deploy_lead_flows.py
    """
    lead_discovery.from_source(
        source=".",
        entrypoint="flows/lead_discovery_flow.py:lead_discovery",
    ).deploy(
        name="lead-discovery-weekday",
        work_pool_name="leadcrm-managed",
        tags=["leads", "discovery"],
        parameters={"segment": "coaches_berater", "cap": 20},
        schedule=CronSchedule(cron="0 7 * * 1-5", timezone="Europe/Berlin"),
        description="Weekday morning intake: discover, dedup and enrich up to 20 new contacts.",
    )

    bulk_enrichment.from_source(
        source=".",
        entrypoint="flows/bulk_enrichment_flow.py:bulk_enrichment",
    ).deploy(
        name="bulk-enrichment-nightly",
        work_pool_name="leadcrm-managed",
        tags=["leads", "enrichment"],
        schedule=CronSchedule(cron="30 2 * * *", timezone="Europe/Berlin"),
        description="Nightly sweep: retry enrichment for contacts with a website but no email.",
    )
