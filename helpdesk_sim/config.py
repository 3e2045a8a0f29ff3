"""
Helpdesk Shift Simulator - Configuration Management
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    """Application settings"""

    # FastAPI
    fastapi_env: str = "development"
    fastapi_host: str = "0.0.0.0"
    fastapi_port: int = 8000
    allowed_origins: str = "http://localhost:3000,http://localhost:5173"  # Comma-separated

    # Content catalog (kb-articles.json, ticket-templates.json)
    content_dir: str = "data"

    # Supabase (action_logs audit trail, optional)
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # Logging
    log_level: str = "INFO"

    # Shift
    shift_duration_seconds: float = 600.0
    stage_tick_seconds: float = 1.0

    # Deadlines
    deadline_sweep_interval_seconds: float = 5.0
    assign_window_normal_seconds: float = 120.0
    assign_window_critical_seconds: float = 60.0
    participant_solve_window_normal_seconds: float = 180.0
    participant_solve_window_critical_seconds: float = 60.0
    ai_solve_window_normal_seconds: float = 180.0
    ai_solve_window_critical_seconds: float = 60.0
    delegate_solve_window_normal_seconds: float = 300.0
    delegate_solve_window_critical_seconds: float = 120.0
    reopen_window_normal_seconds: float = 120.0
    reopen_window_critical_seconds: float = 30.0

    # Ticket spawner
    spawn_interval_seconds: float = 45.0
    spawn_probability: float = 0.3
    critical_cooldown_seconds: float = 30.0
    tutorial_ticket_count: int = 3
    tutorial_spawn_stagger_seconds: float = 1.5

    # Colleague availability
    agent_check_interval_seconds: float = 5.0
    agent_leave_probability: float = 0.15
    agent_return_probability: float = 0.25

    # Client review
    client_review_delay_seconds: float = 1.5
    min_solution_length: int = 15
    client_thanks_delay_seconds: float = 1.0

    # Autonomous AI
    ai_pickup_delay_seconds: float = 1.0
    ai_notice_delay_seconds: float = 2.0
    ai_miss_probability_normal: float = 0.20
    ai_miss_probability_critical: float = 0.95
    ai_fail_probability_normal: float = 0.40
    ai_fail_probability_critical: float = 0.80
    ai_solve_time_normal_min_seconds: float = 3.0
    ai_solve_time_normal_max_seconds: float = 8.0
    ai_solve_time_critical_min_seconds: float = 2.0
    ai_solve_time_critical_max_seconds: float = 5.0

    # Delegation
    delegate_reply_delay_min_seconds: float = 2.0
    delegate_reply_delay_max_seconds: float = 4.0
    delegate_solve_time_normal_min_seconds: float = 10.0
    delegate_solve_time_normal_max_seconds: float = 20.0
    delegate_solve_time_critical_min_seconds: float = 5.0
    delegate_solve_time_critical_max_seconds: float = 10.0
    delegate_fail_probability_normal: float = 0.0
    delegate_fail_probability_critical: float = 0.99
    delegate_ignore_share: float = 0.5

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False
    )

    @property
    def cors_origins(self) -> List[str]:
        """Parsed CORS origin list"""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def audit_persistence_enabled(self) -> bool:
        """Whether action logs are written to Supabase"""
        return bool(self.supabase_url and self.supabase_service_role_key)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
