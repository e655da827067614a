"""Praise phrases for the celebratory feedback sink."""

import random

PRAISE_PHRASES = (
    "太棒了",
    "动作很到位",
    "节奏抓得稳",
    "你学得真快",
    "越来越像小老师",
    "这一段很精彩",
    "手势很标准",
    "步子很轻快",
    "眼神很自信",
    "继续保持",
    "超有感觉",
    "你真厉害",
    "配合得真好",
    "好有力量",
    "动作很干净",
)


def pick_praise(rng=random) -> str:
    return rng.choice(PRAISE_PHRASES)
