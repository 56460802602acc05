"""Demo data: the "Beta Test Plan" starter blueprint.

Idempotent. Running it twice leaves a single demo company, owner and
blueprint.
"""

import logging

from sqlalchemy import select

from intake.models import db
from intake.models.blueprint import Blueprint, Field, Section
from intake.models.company import Company, Member
from intake.services import cache_service
from intake.services.helpers.transactions import transaction

logger = logging.getLogger(__name__)

DEMO_COMPANY = {"name": "Demo Company", "slug": "demo"}
DEMO_OWNER = {"email": "demo@example.com", "name": "Demo Owner", "role": "owner"}

BETA_TEST_PLAN = {
    "name": "Beta Test Plan",
    "description": (
        "Comprehensive template for planning a beta test program with objectives, "
        "participants, product details, and schedule"
    ),
    "sections": [
        {
            "title": "Project Overview",
            "description": "High level context for the beta.",
            "fields": [
                ("project_name", "ShortText", "Project name", "Working title or code name", True, 1),
                ("objective", "LongText", "Primary objectives", "What this beta must prove", True, 2),
                ("success_criteria", "LongText", "Success criteria", "Measurable outcomes", True, 2),
                ("is_public_beta", "Toggle", "Public beta", "Public vs private", False, 1),
            ],
        },
        {
            "title": "Participants",
            "description": "Who will participate and how many.",
            "fields": [
                ("target_profile", "LongText", "Target profile", "Persona, segments, devices", True, 2),
                ("recruitment_channels", "LongText", "Recruitment channels", "Email, panel, social", False, 2),
                ("participant_count", "ShortText", "Participant count", "Number or range", True, 1),
            ],
        },
        {
            "title": "Product Details",
            "description": "What is being tested.",
            "fields": [
                ("product_description", "LongText", "Product description", "What it does and for whom", True, 2),
                ("key_features", "LongText", "Key features", "Bulleted list in Markdown", False, 2),
                ("price", "ShortText", "Price", "List price or range", False, 1),
            ],
        },
        {
            "title": "Schedule",
            "description": "Timeline for the beta.",
            "fields": [
                ("start_date", "ShortText", "Start date", "YYYY-MM-DD", True, 1),
                ("end_date", "ShortText", "End date", "YYYY-MM-DD", True, 1),
                ("milestones", "LongText", "Key milestones", "Bulleted list", False, 2),
            ],
        },
    ],
}


def _get_or_create_company(slug: str) -> Company:
    company = db.session.execute(
        select(Company).where(Company.slug == slug)
    ).scalar_one_or_none()
    if company is None:
        name = DEMO_COMPANY["name"] if slug == DEMO_COMPANY["slug"] else slug
        company = Company(name=name, slug=slug)
        db.session.add(company)
        db.session.flush()
        db.session.add(Member(company_id=company.id, **DEMO_OWNER))
        db.session.flush()
    return company


def seed_demo_blueprint(company_slug: str = DEMO_COMPANY["slug"]) -> dict:
    """Create the demo company and its published "Beta Test Plan" blueprint.

    Returns:
        ``{"company_id", "blueprint_id", "created"}``; ``created`` is False
        when the blueprint already existed.
    """
    with transaction():
        company = _get_or_create_company(company_slug)
        company_id = company.id

        existing = db.session.execute(
            select(Blueprint.id).where(
                Blueprint.company_id == company.id,
                Blueprint.name == BETA_TEST_PLAN["name"],
            )
        ).scalars().first()
        if existing is not None:
            return {"company_id": company_id, "blueprint_id": existing, "created": False}

        bp = Blueprint(
            company_id=company.id,
            name=BETA_TEST_PLAN["name"],
            description=BETA_TEST_PLAN["description"],
            version=1,
            status="published",
        )
        db.session.add(bp)
        db.session.flush()

        for s_index, spec in enumerate(BETA_TEST_PLAN["sections"]):
            section = Section(
                blueprint_id=bp.id,
                order_index=s_index,
                title=spec["title"],
                description=spec["description"],
            )
            db.session.add(section)
            db.session.flush()
            for f_index, (key, ftype, label, help_text, required, span) in enumerate(spec["fields"]):
                db.session.add(Field(
                    section_id=section.id,
                    key=key,
                    type=ftype,
                    label=label,
                    help_text=help_text,
                    required=required,
                    span=span,
                    order_index=f_index,
                ))
        db.session.flush()
        blueprint_id = bp.id

    cache_service.invalidate_blueprint_list(company_id)
    logger.info("Seeded demo blueprint id=%s company_id=%s", blueprint_id, company_id)
    return {"company_id": company_id, "blueprint_id": blueprint_id, "created": True}
