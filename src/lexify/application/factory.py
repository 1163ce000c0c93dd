"""
Lexify Factory
Centralizes the logic for building collaborators from an AppConfig.
"""

import random

from lexify.application.config import AppConfig
from lexify.application.game_engine import GameEngine
from lexify.application.question_adapter import QuestionAdapter, build_adapter
from lexify.application.quiz_log import QuizLog
from lexify.application.scheduler import Scheduler, SchedulerParameters
from lexify.application.utils.text import parse_steps
from lexify.application.word_details import WordDetailsService
from lexify.application.word_store import WordStore
from lexify.domain.errors import ConfigurationError
from lexify.domain.interfaces import WordRepository
from lexify.infrastructure.adapters.http_question_service import HttpQuestionService
from lexify.infrastructure.persistence.json_file import JsonFileWordRepository


def build_scheduler(config: AppConfig, rng: random.Random | None = None) -> Scheduler:
    parameters = SchedulerParameters(
        request_retention=config.request_retention,
        maximum_interval=config.maximum_interval,
        learning_steps=parse_steps(config.learning_steps),
        relearning_steps=parse_steps(config.relearning_steps),
        enable_fuzz=config.enable_fuzz,
        enable_short_term=config.enable_short_term,
    )
    return Scheduler(parameters, rng=rng)


def get_word_repository(config: AppConfig) -> WordRepository:
    return JsonFileWordRepository(config.data_file)


def get_question_service(config: AppConfig) -> HttpQuestionService:
    """
    Returns the HTTP generation service.

    Raises:
        ConfigurationError: If no AI service URL is configured.
    """
    if not config.ai_base_url:
        raise ConfigurationError(
            "No AI service configured. Set LEXIFY_AI_BASE_URL or ai_base_url in config.toml."
        )
    return HttpQuestionService(
        base_url=config.ai_base_url,
        api_key=config.ai_api_key,
        timeout=config.request_timeout,
    )


def build_store(config: AppConfig, repository: WordRepository | None = None) -> WordStore:
    return WordStore(
        repository if repository is not None else get_word_repository(config),
        build_scheduler(config),
        max_word_length=config.max_word_length,
    )


def build_game(
    config: AppConfig,
    store: WordStore,
    service: HttpQuestionService,
    mode: str | None = None,
) -> GameEngine:
    adapter: QuestionAdapter = build_adapter(mode or config.game_mode, service)
    return GameEngine(
        store,
        adapter,
        failure_threshold=config.failure_threshold,
        details_service=WordDetailsService(service),
        quiz_log=QuizLog(config.quiz_log_size),
    )
