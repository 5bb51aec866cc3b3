"""检测参数配置：默认值与 JSON 配置文件加载"""

import json
import logging

logger = logging.getLogger(__name__)

# 默认阈值（时间单位均为毫秒）
_DEFAULTS = {
    "baseline_alpha": 0.95,
    "blink_threshold_ratio": 0.75,
    "blink_min_ms": 50,
    "blink_max_ms": 600,
    "blink_notify_every": 5,
    "yawn_threshold": 0.85,
    "yawn_min_peak": 0.80,
    "yawn_min_ms": 1500,
    "yawn_max_ms": 5000,
    "gaze_threshold_x": 0.15,
    "gaze_threshold_y": 0.20,
    "look_away_min_ms": 800,
    "blink_penalty": 5,
    "yawn_penalty": 15,
    "look_away_penalty": 20,
    "snapshot_interval_ms": 500,
    "sink_url": None,
}


def load_config(config_path=None) -> dict:
    """从 JSON 配置文件加载参数，缺失字段使用默认值。"""
    config = dict(_DEFAULTS)

    if config_path is None:
        return config

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.warning("配置文件不存在 %s，使用默认阈值", config_path)
        return config
    except json.JSONDecodeError:
        logger.warning("配置文件格式错误 %s，使用默认阈值", config_path)
        return config

    # 用配置文件中的值覆盖默认值
    for key in _DEFAULTS:
        if key in data and data[key] is not None:
            config[key] = data[key]

    return config
