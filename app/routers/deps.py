from fastapi import Request

from app.core.config import Settings
from app.services.dead_letter import DeadLetterReader
from app.services.registry import JobStore, ModelStore
from app.workers.runner import JobRunner


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_job_store(request: Request) -> JobStore:
    return request.app.state.job_store


def get_model_store(request: Request) -> ModelStore:
    return request.app.state.model_store


def get_job_runner(request: Request) -> JobRunner:
    return request.app.state.job_runner


def get_dead_letter_reader(request: Request) -> DeadLetterReader:
    return request.app.state.dead_letter_reader
