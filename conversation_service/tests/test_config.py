from conversation_service.config import Environment, Settings


def test_postgres_urls_use_async_driver():
    settings = Settings(CONVERSATION_SERVICE_DATABASE_URL="postgresql://u:p@db:5432/chat")
    assert settings.DATABASE_URL == "postgresql+psycopg://u:p@db:5432/chat"


def test_plan_limits_fall_back_to_default_plan():
    settings = Settings(
        CONVERSATION_SERVICE_PLAN_LIMITS={"free": 3, "premium": 20},
        CONVERSATION_SERVICE_DEFAULT_PLAN="free",
    )
    assert settings.max_active_for_plan("premium") == 20
    assert settings.max_active_for_plan("enterprise") == 3
    assert settings.max_active_for_plan(None) == 3


def test_test_run_is_in_testing_environment():
    settings = Settings()
    assert settings.ENVIRONMENT == Environment.TESTING
    assert settings.is_testing()
    assert settings.RATE_LIMIT_ENABLED is False
