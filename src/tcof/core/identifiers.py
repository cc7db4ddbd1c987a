"""任务引用解析

客户端渲染列表时曾在任务 ID 后追加区分后缀（uuid-suffix），
这些复合 ID 会流入更新/删除请求。parse() 负责把原始引用拆成
规范 ID + 可选后缀，所有调用方共享同一份拆分结果。
"""

import uuid
from dataclasses import dataclass

ID_SEPARATOR = "-"

# UUID 形态的 ID 由 5 段组成：8-4-4-4-12
CANONICAL_SEGMENTS = 5


@dataclass(frozen=True)
class ParsedRef:
    """引用解析结果"""

    raw: str
    canonical: str
    suffix: str | None = None

    @property
    def is_compound(self) -> bool:
        return self.suffix is not None

    def prefixes(self) -> list[str]:
        """原始引用按分隔符截断得到的真前缀，由长到短

        "t1-extra-suffix" -> ["t1-extra", "t1"]
        用于 ID 本身不是 UUID 形态时仍能剥离后缀。
        """
        segments = self.raw.split(ID_SEPARATOR)
        candidates = (
            ID_SEPARATOR.join(segments[:count])
            for count in range(len(segments) - 1, 0, -1)
        )
        return [prefix for prefix in candidates if prefix]


def parse(raw: str) -> ParsedRef:
    """拆分任务引用

    分段数超过 CANONICAL_SEGMENTS 时，前 5 段为规范 ID，其余为后缀；
    否则整个字符串即规范 ID。纯函数，对任意字符串都有结果。
    """
    segments = raw.split(ID_SEPARATOR)
    if len(segments) <= CANONICAL_SEGMENTS:
        return ParsedRef(raw=raw, canonical=raw)

    return ParsedRef(
        raw=raw,
        canonical=ID_SEPARATOR.join(segments[:CANONICAL_SEGMENTS]),
        suffix=ID_SEPARATOR.join(segments[CANONICAL_SEGMENTS:]),
    )


def compound_id(canonical: str, suffix: str) -> str:
    """拼接复合 ID（仅用于展示和测试，不应作为存储 ID）"""
    return f"{canonical}{ID_SEPARATOR}{suffix}"


def new_task_id() -> str:
    """生成新任务 ID -- 标准 5 段 UUID，与 rawRef 无关"""
    return str(uuid.uuid4())
