#!/usr/bin/env python3
"""Seed the raw_data table with sample reports from three reporting centres.

Inserts eight reports dated relative to now, so they fall inside the default
30-day window:
  1  Singapore Strait boarding    — RECAAP + UKMTO, same IMO, 2h / ~3nm apart
  2  Gulf of Aden approach        — UKMTO + MDAT, name match only, no IMO
  3  Gulf of Guinea robbery       — MDAT + RECAAP, one side without position
  4  Red Sea missile report       — UKMTO only (no counterpart)
  5  Stale duplicate              — MDAT report 10 days before its RECAAP twin
"""
from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import typer

# Ensure the backend package is importable when running from repo root.
_backend_dir = Path(__file__).resolve().parent.parent / "backend"
if str(_backend_dir) not in sys.path:
    sys.path.insert(0, str(_backend_dir))

from incident_dedup.database import SessionLocal, init_db
from incident_dedup.models.raw_incident import RawIncident

cli = typer.Typer(help="Seed sample incident reports for incident-dedup development/testing.")


def _sample_reports(now: datetime) -> list[dict]:
    base = now.replace(minute=0, second=0, microsecond=0, tzinfo=None) - timedelta(days=2)
    return [
        {
            "id": "recSAMPLE01RECAAP",
            "source": "RECAAP",
            "date": base,
            "title": "Boarding of bulk carrier in Singapore Strait",
            "description": "Four perpetrators boarded the bulk carrier while underway eastbound. "
                           "Crew mustered, nothing stolen, perpetrators escaped.",
            "latitude": 1.2050, "longitude": 103.7800,
            "location": "Singapore Strait", "region": "Southeast Asia",
            "vessel_name": "OCEAN PIONEER", "vessel_type": "Bulk Carrier",
            "vessel_imo": "9234567", "incident_type": "Boarding",
            "reference": "IA-2026-0141",
            "response_actions": ["Crew mustered", "Alarm raised"],
        },
        {
            "id": "recSAMPLE01UKMTO",
            "source": "UKMTO",
            "date": base + timedelta(hours=2),
            "title": "Boarding - Singapore Strait",
            "description": "UKMTO received a report of unauthorised boarding of a bulk carrier.",
            "latitude": 1.2300, "longitude": 103.8200,
            "vessel_flag": "Panama", "vessel_imo": "IMO 9234567",
            "incident_type": "Boarded",
            "authorities_notified": ["Singapore VTIS"],
        },
        {
            "id": "recSAMPLE02UKMTO",
            "source": "UKMTO",
            "date": base - timedelta(days=1),
            "title": "Suspicious approach 80nm east of Aden",
            "description": "Skiff with five persons approached to 0.5nm. Ladders sighted.",
            "latitude": 12.6500, "longitude": 46.3000,
            "vessel_name": "M/T GULF STAR", "vessel_type": "Chemical Tanker",
            "incident_type": "Suspicious Approach",
        },
        {
            "id": "recSAMPLE02MDAT",
            "source": "MDAT",
            "date": base - timedelta(days=1, hours=-3),
            "title": "Suspicious approach Gulf of Aden",
            "description": "Tanker approached by a skiff; armed security team showed weapons.",
            "latitude": 12.7000, "longitude": 46.2000,
            "vessel_name": "GULF STAR", "vessel_type": "Tanker",
            "incident_type": "Suspicious Activity",
        },
        {
            "id": "recSAMPLE03MDAT",
            "source": "MDAT",
            "date": base - timedelta(days=4),
            "title": "Robbery at Lagos anchorage",
            "description": "Robbers boarded an anchored product tanker and stole ship stores.",
            "vessel_name": "DELTA GRACE", "incident_type": "Robbery",
        },
        {
            "id": "recSAMPLE03RECAAP",
            "source": "RECAAP",
            "date": base - timedelta(days=4, hours=5),
            "title": "Theft of stores, Lagos anchorage",
            "description": "Ship stores stolen from anchored tanker at Lagos anchorage.",
            "latitude": 6.3500, "longitude": 3.3800, "location": "Lagos anchorage",
            "vessel_name": "DELTA GRACE", "vessel_type": "Product Tanker",
            "incident_type": "Robbery/Theft",
        },
        {
            "id": "recSAMPLE04UKMTO",
            "source": "UKMTO",
            "date": base - timedelta(days=6),
            "title": "Missile impact reported in southern Red Sea",
            "latitude": 13.9000, "longitude": 42.6000,
            "incident_type": "Missile Attack",
        },
        {
            "id": "recSAMPLE05MDAT",
            "source": "MDAT",
            "date": base - timedelta(days=12),
            "title": "Boarding of bulk carrier in Singapore Strait",
            "latitude": 1.2050, "longitude": 103.7800,
            "vessel_imo": "9234567", "incident_type": "Boarding",
        },
    ]


@cli.command()
def generate(
    purge: bool = typer.Option(
        False, "--purge", help="Delete existing sample reports before inserting."
    ),
) -> None:
    """Insert the sample reports into the configured database."""
    init_db()
    session = SessionLocal()

    reports = _sample_reports(datetime.now(timezone.utc))
    sample_ids = [r["id"] for r in reports]

    try:
        if purge:
            # Clear merged_into first: sample rows may point at each other
            existing = (
                session.query(RawIncident)
                .filter(RawIncident.id.in_(sample_ids))
                .all()
            )
            for row in existing:
                row.merged_into = None
            session.flush()
            for row in existing:
                session.delete(row)
            session.commit()
            typer.echo(f"Purged {len(existing)} existing sample report(s).")

        inserted = 0
        for report in reports:
            if session.get(RawIncident, report["id"]) is not None:
                typer.echo(f"  {report['id']} already exists — skipping. Use --purge to recreate.")
                continue
            session.add(RawIncident(**report))
            inserted += 1
            typer.echo(f"  {report['source']:<7} {report['id']}: {report['title']}")

        session.commit()
        typer.echo(f"\nInserted {inserted} sample report(s).")

    except Exception as exc:
        session.rollback()
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)
    finally:
        session.close()


if __name__ == "__main__":
    cli()
