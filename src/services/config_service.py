"""
Configuration service using Pydantic for type-safe config management.
"""

import os
from pathlib import Path
from typing import Dict, Any, List, Optional
import yaml
import logging
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "WALLGEN_CONFIG"


class ProcessorConfig(BaseModel):
    """Wall segment processor parameters (lengths in planar units, angles in degrees)."""
    wall_thicknesses: List[float] = Field(default_factory=list, description="Nominal thicknesses, tried largest first")
    door_widths: List[float] = Field(default_factory=list, description="Opening widths bridged by gap recovery")
    column_widths: List[float] = Field(default_factory=list, description="Column widths bridged by gap recovery")
    angle_tolerance: float = Field(default=5.0, ge=0.0, description="Angle tolerance in degrees")
    distance_tolerance: float = Field(default=10.0, ge=0.0, description="Collinearity/merge tolerance")
    axis_snap_distance: float = Field(default=50.0, ge=0.0)
    auto_join_gap_distance: float = Field(default=300.0, ge=0.0)
    enable_auto_extend: bool = True
    break_at_grid_intersections: bool = False
    extend_to_grid_intersections: bool = False

    default_thickness: float = Field(default=100.0, gt=0.0, description="Thickness for single lines without one")
    min_centerline_length: float = Field(default=50.0, ge=0.0)
    auto_extend_tolerance: float = Field(default=100.0, ge=0.0)
    grid_extend_max_distance: float = Field(default=500.0, ge=0.0)
    gap_width_tolerance: float = Field(default=0.15, ge=0.0, description="Relative tolerance on opening widths")
    spatial_index_threshold: int = Field(default=500, ge=0, description="Centerline count enabling the spatial index")
    spatial_index_cell_size: float = Field(default=1000.0, gt=0.0)


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    log_file: Optional[str] = None
    trace_dir: Optional[str] = None


class AppConfig(BaseModel):
    """Main application configuration."""
    # Pydantic automatically converts dicts to these model types
    processor: ProcessorConfig = Field(default_factory=ProcessorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class ConfigService:
    """Service for loading and managing configuration."""
    
    def __init__(self, config_path: Optional[Path] = None):
        env_path = os.getenv(CONFIG_ENV_VAR)
        self.config_path = Path(config_path or env_path or "config.yaml")
        self._config: Optional[AppConfig] = None
        self._load_config()
    
    def _load_config(self) -> None:
        """Load configuration from YAML file."""
        try:
            if not self.config_path.exists():
                logger.warning(f"Config file not found: {self.config_path}, using defaults")
                self._config = AppConfig()
                return
            
            with self.config_path.open("r", encoding="utf-8") as f:
                raw_config = yaml.safe_load(f) or {}
            
            self._config = AppConfig(**raw_config)
            logger.info(f"Configuration loaded from {self.config_path}")
            
        except ValidationError as e:
            logger.error(f"Config validation error: {e}")
            self._config = AppConfig()
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error loading config: {e}", exc_info=True)
            self._config = AppConfig()
    
    def get_config(self) -> AppConfig:
        """Get current configuration."""
        if self._config is None:
            self._load_config()
        return self._config
    
    def get_processor_config(self) -> ProcessorConfig:
        """Get wall segment processor parameters."""
        return self.get_config().processor
    
    def get_raw_config(self) -> Dict[str, Any]:
        """Get config as a plain dict."""
        return self.get_config().model_dump()
    
    def update_config(self, updates: Dict[str, Any]) -> None:
        """
        Update configuration (does not persist to file).
        
        Section dicts are merged key by key, so ``{"processor": {"angle_tolerance": 2}}``
        keeps every other processor parameter.
        """
        current = self.get_config().model_dump()
        for key, value in updates.items():
            if isinstance(value, dict) and isinstance(current.get(key), dict):
                current[key].update(value)
            else:
                current[key] = value
        self._config = AppConfig(**current)
    
    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()
