"""
Seed the database with sample referrers and candidates.

Usage:
    python -m scripts.seed            # add sample data, skipping existing emails
    python -m scripts.seed --reset    # delete all candidates (and resumes) first
"""

import argparse
import logging
import sys

from referral_tracker.core.config import settings
from referral_tracker.core.database import Database
from referral_tracker.core.errors import ConflictError
from referral_tracker.core.logging_config import setup_logging
from referral_tracker.core.storage import get_storage
from referral_tracker.crud.candidate import SQLAlchemyCandidateRepository
from referral_tracker.models.candidate import CandidateStatus
from referral_tracker.models.user import User
from referral_tracker.services.candidate_service import CandidateService

logger = logging.getLogger(__name__)

SAMPLE_USERS = [
    {"name": "Admin User", "email": "admin@example.com"},
    {"name": "Test User", "email": "test@example.com"},
]

SAMPLE_CANDIDATES = [
    {
        "name": "John Doe",
        "email": "john.doe@example.com",
        "phone": "+1-555-0101",
        "job_title": "Senior Software Engineer",
        "status": CandidateStatus.PENDING,
        "notes": "Strong background in React and Node.js"
    },
    {
        "name": "Jane Smith",
        "email": "jane.smith@example.com",
        "phone": "+1-555-0102",
        "job_title": "Product Manager",
        "status": CandidateStatus.REVIEWED,
        "notes": "Excellent communication skills and product vision"
    },
    {
        "name": "Michael Johnson",
        "email": "michael.j@example.com",
        "phone": "+1-555-0103",
        "job_title": "UX Designer",
        "status": CandidateStatus.HIRED,
        "notes": "Portfolio showcases impressive design work"
    },
    {
        "name": "Emily Davis",
        "email": "emily.davis@example.com",
        "phone": "+1-555-0104",
        "job_title": "Data Scientist",
        "status": CandidateStatus.PENDING,
        "notes": "PhD in Machine Learning from Stanford"
    },
    {
        "name": "Robert Brown",
        "email": "robert.brown@example.com",
        "phone": "+1-555-0105",
        "job_title": "DevOps Engineer",
        "status": CandidateStatus.REVIEWED,
        "notes": "Expert in Kubernetes and AWS infrastructure"
    },
    {
        "name": "Sarah Wilson",
        "email": "sarah.wilson@example.com",
        "phone": "+1-555-0106",
        "job_title": "Frontend Developer",
        "status": CandidateStatus.REJECTED,
        "notes": "Did not meet the experience requirements"
    },
]


def seed(database: Database, service_factory, reset: bool = False) -> int:
    """
    Insert sample users and candidates.

    Returns:
        Number of candidates created
    """
    db = database.session()
    try:
        service = service_factory(db)

        if reset:
            for candidate in service.list():
                service.delete(candidate.id)
            logger.info("Removed existing candidates")

        referrers = []
        for data in SAMPLE_USERS:
            user = db.query(User).filter(User.email == data["email"]).first()
            if user is None:
                user = User(**data)
                db.add(user)
                db.commit()
                db.refresh(user)
            referrers.append(user)

        created = 0
        for index, data in enumerate(SAMPLE_CANDIDATES):
            fields = {k: v for k, v in data.items() if k != "status"}
            referrer = referrers[index % len(referrers)]
            try:
                candidate = service.create(fields, referrer_id=referrer.id)
            except ConflictError:
                logger.info(f"Skipping existing candidate {data['email']}")
                continue
            if data["status"] != CandidateStatus.PENDING:
                service.set_status(candidate.id, data["status"])
            created += 1

        return created
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Seed the referral database with sample data")
    parser.add_argument("--reset", action="store_true", help="Delete existing candidates first")
    args = parser.parse_args(argv)

    setup_logging(settings.LOG_LEVEL, json_logs=False)

    database = Database(settings.DATABASE_URL)
    database.startup(create_tables=True)
    storage = get_storage(settings)

    def service_factory(db):
        return CandidateService(SQLAlchemyCandidateRepository(db), storage, settings.MAX_ATTACHMENT_BYTES)

    try:
        created = seed(database, service_factory, reset=args.reset)
    finally:
        database.shutdown()

    logger.info(f"Seeded {created} candidates")
    return 0


if __name__ == "__main__":
    sys.exit(main())
