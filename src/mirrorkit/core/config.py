"""
核心配置模块

优先级（高 → 低）：构造参数 > 环境变量（MIRROIR_ 前缀）> .env > .mirroir/settings.json > 默认值
"""
from typing import Dict, List, Tuple, Type

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class Settings(BaseSettings):
    """系统配置"""

    model_config = SettingsConfigDict(
        env_prefix="MIRROIR_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        json_file=".mirroir/settings.json",
    )

    # 日志
    log_level: str = Field(default="INFO")
    log_path: str = Field(default="./logs")
    log_retention_days: int = Field(default=3)
    log_rotation: str = Field(default="00:00")
    log_console_enabled: bool = Field(default=True)
    log_file_enabled: bool = Field(default=True)

    # 步骤执行
    wait_for_timeout_seconds: int = Field(default=15)
    wait_for_poll_interval_ms: int = Field(default=1000)
    step_settling_delay_ms: int = Field(default=500)
    compiled_sleep_buffer_ms: int = Field(default=200)
    measure_poll_interval_ms: int = Field(default=500)
    swipe_distance_fraction: float = Field(default=0.3)
    swipe_duration_ms: int = Field(default=300)
    long_press_duration_ms: int = Field(default=1000)
    default_scroll_max: int = Field(default=10)
    app_switcher_card_offset: float = Field(default=150.0)
    app_switcher_swipe_distance: float = Field(default=400.0)
    app_switcher_swipe_duration_ms: int = Field(default=200)

    # 录制
    event_tap_distance_threshold: float = Field(default=5.0)
    event_swipe_distance_threshold: float = Field(default=30.0)
    event_long_press_threshold: float = Field(default=0.5)
    event_label_max_distance: float = Field(default=50.0)
    # 宿主桌面上镜像窗口的位置与尺寸；宽或高为 0 时视为 1:1 镜像且位于原点
    mirror_window_x: float = Field(default=0.0)
    mirror_window_y: float = Field(default=0.0)
    mirror_window_width: float = Field(default=0.0)
    mirror_window_height: float = Field(default=0.0)

    # 设备 / ADB
    adb_path: str = Field(default="adb")
    adb_serial: str = Field(default="")
    process_timeout_seconds: float = Field(default=10.0)
    screencap_timeout_seconds: float = Field(default=15.0)
    # 场景中的应用名 → 包名
    app_packages: Dict[str, str] = Field(default_factory=dict)
    # 多设备：target 名 → 设备序列号；为空时只有 adb_serial 对应的 "default"
    adb_targets: Dict[str, str] = Field(default_factory=dict)

    # OCR
    ocr_lang: str = Field(default="en")
    ocr_min_confidence: float = Field(default=0.5)

    # 运行器
    screenshot_dir: str = Field(default="./mirroir-test-results")
    scenario_dirs: List[str] = Field(default_factory=lambda: ["./scenarios", "./.mirroir/scenarios"])

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls),
        )


# 全局配置实例
settings = Settings()
