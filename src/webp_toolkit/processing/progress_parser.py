"""ffmpeg 进度输出解析。

ffmpeg 在 stderr 上周期性输出形如::

    frame=  120 fps= 30 q=28.0 size=     512kB time=00:00:04.00 bitrate=1048.6kbits/s speed=1.0x

这里只关心 ``time=HH:MM:SS.ms`` 字段。
"""

from __future__ import annotations

import re
from typing import Optional

TIME_RE = re.compile(r"time=(-?)(\d+):(\d{1,2}):(\d{1,2}(?:\.\d+)?)")


def parse_elapsed_seconds(line: str) -> Optional[float]:
    """从一行日志中提取已编码时长（秒）；没有时间字段或为 ``N/A`` 时返回 None。"""

    match = TIME_RE.search(line)
    if not match:
        return None
    negative, hours, minutes, seconds = match.groups()
    if negative:
        # 编码刚开始时 ffmpeg 偶尔输出负的时间戳
        return 0.0
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def compute_fraction(elapsed: float, duration: float) -> Optional[float]:
    """返回 0.0 ~ 1.0 的完成比例；总时长未知时返回 None。"""

    if duration <= 0:
        return None
    return min(max(elapsed / duration, 0.0), 1.0)


def parse_duration(text: str) -> float:
    """解析 ffprobe ``format=duration`` 的输出，无法识别时返回 0.0。"""

    value = text.strip().splitlines()[0].strip() if text.strip() else ""
    try:
        duration = float(value)
    except ValueError:
        return 0.0
    return duration if duration > 0 else 0.0
