from functools import lru_cache
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict

from .workflow.layout import GridLayout, LaneLayout


class Settings(BaseSettings):
    """Engine settings loaded from environment variables (INTENTGRAPH_*)."""

    model_config = SettingsConfigDict(
        env_prefix="INTENTGRAPH_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = "INFO"
    log_json: bool = False

    # ------------------------------------------------------------------
    # Canvas and layout
    # ------------------------------------------------------------------
    canvas_bound: int = 10000          # |x| and |y| must stay within this
    grid_row_width: int = 5            # nodes per row when repositioning
    grid_node_width: int = 300
    grid_node_height: int = 200
    grid_origin_x: int = 240
    grid_origin_y: int = 300
    lane_origin_x: int = 100           # synthesis lane: x = origin + spacing * i
    lane_spacing: int = 200
    lane_y: int = 200

    # ------------------------------------------------------------------
    # Node identity
    # ------------------------------------------------------------------
    min_node_id_length: int = 8

    # ------------------------------------------------------------------
    # Workflow-level defaults
    # ------------------------------------------------------------------
    execution_timeout: int = 3600
    timezone: str = "UTC"

    # ------------------------------------------------------------------
    # Repair option defaults
    # ------------------------------------------------------------------
    default_auto_fix: bool = True
    default_preserve_complexity: bool = True

    def grid_layout(self) -> GridLayout:
        return GridLayout(
            row_width=self.grid_row_width,
            node_width=self.grid_node_width,
            node_height=self.grid_node_height,
            origin_x=self.grid_origin_x,
            origin_y=self.grid_origin_y,
        )

    def lane_layout(self) -> LaneLayout:
        return LaneLayout(
            origin_x=self.lane_origin_x,
            spacing=self.lane_spacing,
            y=self.lane_y,
        )

    def default_workflow_settings(self) -> dict[str, Any]:
        """The settings record merged into graphs that lack any of these keys."""
        return {
            "saveExecutionProgress": True,
            "saveManualExecutions": True,
            "saveDataErrorExecution": "all",
            "saveDataSuccessExecution": "all",
            "executionTimeout": self.execution_timeout,
            "timezone": self.timezone,
        }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
