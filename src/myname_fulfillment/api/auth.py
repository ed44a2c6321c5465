"""
Bearer Token 校验
"""
import hmac
from typing import Optional


def bearer_matches(authorization: Optional[str], secret: str) -> bool:
    """未配置 secret 时放行；否则要求 Authorization: Bearer <secret>"""
    if not secret:
        return True
    # 按字节比较：请求头可能含非 ASCII 字符
    expected = f"Bearer {secret}".encode("utf-8")
    return hmac.compare_digest((authorization or "").encode("utf-8"), expected)
