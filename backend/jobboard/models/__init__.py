"""Database models"""
from jobboard.models.job_listing import JobListing, JobStatus, EmploymentType
from jobboard.models.application import Application, ApplicationStatus

__all__ = [
    "JobListing",
    "JobStatus",
    "EmploymentType",
    "Application",
    "ApplicationStatus",
]
