"""
配置管理模块
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

# 加载环境变量
load_dotenv()

_DEFAULT_CONDITIONS_PATH = Path(__file__).parent / "combat" / "data" / "conditions.json"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_optional_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None:
        return default
    if not raw.strip() or raw.strip().lower() == "none":
        return None
    return int(raw)


class Settings(BaseModel):
    """规则引擎配置"""

    # 开发模式：前置条件被破坏时直接抛出异常（如同一tick内重复结算回合结束）
    strict_mode: bool = _env_bool("EDORIA_STRICT_MODE", False)

    # 逃跑判定DC（None 表示逃跑必定成功）
    flee_dc: Optional[int] = _env_optional_int("EDORIA_FLEE_DC", 10)

    # 状态定义数据文件
    conditions_path: Path = Path(
        os.getenv("EDORIA_CONDITIONS_PATH", str(_DEFAULT_CONDITIONS_PATH))
    )

    model_config = ConfigDict(case_sensitive=False)


# 全局配置实例
settings = Settings()


def validate_config() -> bool:
    """
    验证配置是否完整

    Returns:
        bool: 配置是否有效
    """
    if not settings.conditions_path.exists():
        print(f"警告: 状态定义文件不存在: {settings.conditions_path}")
        return False

    if settings.flee_dc is not None and settings.flee_dc < 1:
        print(f"警告: EDORIA_FLEE_DC 必须 >= 1，当前为 {settings.flee_dc}")
        return False

    return True
