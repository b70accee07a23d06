"""文件名/URL 安全的 slug 生成。"""

from __future__ import annotations

import re

from webp_toolkit.core.exceptions import ConfigurationError

_HYPHEN_RUN_RE = re.compile(r"-{2,}")

UNDERSCORE_MODES = {"drop", "hyphen"}


def sanitize(text: str, *, underscore: str = "drop") -> str:
    """把任意文本转换为小写、以连字符分隔的 slug。

    处理顺序固定，调换顺序会改变结果：

    1. 去掉字母数字、空格、连字符、下划线以外的所有字符；
    2. 转为小写；
    3. 空格替换为连字符；
    4. 删除下划线（``underscore="hyphen"`` 时改为替换成连字符）；
    5. 连续多个连字符合并为一个；
    6. 去掉首尾连字符。

    结果可能为空字符串，但不会抛出异常。
    """

    if underscore not in UNDERSCORE_MODES:
        raise ValueError(f"未知的下划线处理方式: {underscore}")

    kept = _keep_allowed(text)
    # lower() 可能引入组合字符（"İ" -> "i\u0307"），需再过滤一次以保证幂等
    lowered = _keep_allowed(kept.lower())
    hyphenated = lowered.replace(" ", "-")
    hyphenated = hyphenated.replace("_", "-" if underscore == "hyphen" else "")
    collapsed = _HYPHEN_RUN_RE.sub("-", hyphenated)
    return collapsed.strip("-")


def format_text(text: str, *, underscore: str = "hyphen") -> str:
    """文本格式化工具：结果为空时视为输入错误。"""

    formatted = sanitize(text, underscore=underscore)
    if not formatted:
        raise ConfigurationError("格式化后的文本为空，请输入有效的文本。")
    return formatted


def _keep_allowed(text: str) -> str:
    return "".join(ch for ch in text if ch.isalnum() or ch in " -_")
