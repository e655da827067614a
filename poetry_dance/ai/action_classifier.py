"""
ActionClassifier - Heuristic Classification Engine
Maps a motion-history Summary to a named dance action.

No trained model: an ordered cascade of threshold rules, first match wins.
Rules are ordered from most specific (stillness, clapping, synchronised
sways) to the generic energy-based fallbacks, so a busy clap is never read
as a jump. Thresholds were tuned on webcam footage at ~8 ticks/s on a
64x64 luminance raster; change them together or not at all.
"""

from dataclasses import dataclass
from typing import Callable, Tuple, Union

from poetry_dance.features.motion_history import Summary
from poetry_dance.utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class ActionLabel:
    name: str
    group: str


STILL = ActionLabel("静止准备", "still")
CLAP_FAST = ActionLabel("拍手节奏（连拍）", "clap")
CLAP_LIGHT = ActionLabel("拍手节奏（轻拍）", "clap")
PALMS_LR = ActionLabel("双手合十左右摆动", "lr_sway")
PALMS_TB = ActionLabel("双手合十上下点动", "tb_sway")
FIST_LR = ActionLabel("抱拳左右摆动", "lr_sway")
PENDULUM_LR = ActionLabel("双手左右摆动（像钟摆）", "lr_sway")
WAVES_TB = ActionLabel("双手上下摆动（像海浪）", "tb_sway")
TWIST = ActionLabel("左右转体摆肩", "twist")
WAVE_RIGHT = ActionLabel("单手挥手（右）", "wave")
WAVE_LEFT = ActionLabel("单手挥手（左）", "wave")
WAVE_ALT = ActionLabel("双手交替挥动", "wave_alt")
RAISE_DROP = ActionLabel("双手上举再放下", "raise_drop")
DIAGONAL_UP_RIGHT = ActionLabel("双手斜向上摆（右上）", "diagonal")
DIAGONAL_UP_LEFT = ActionLabel("双手斜向上摆（左上）", "diagonal")
DIAGONAL = ActionLabel("双手斜向摆动", "diagonal")
ARMS_OPEN_CLOSE = ActionLabel("双臂展开再合拢", "open_close")
CHEST_OPEN = ActionLabel("双手从胸前打开", "open_close")
ARM_CIRCLES = ActionLabel("双臂向两侧画圆", "circles")
JUMP_IN_PLACE = ActionLabel("原地小跳", "jump")
JUMP_SIDEWAYS = ActionLabel("侧向小跳", "jump")
SIDE_STEPS = ActionLabel("左右踏步", "steps")
PUSH_PULL = ActionLabel("双手前推后收", "push_pull")
FOLLOW = ActionLabel("动作跟随", "generic")

ACTION_CATALOG = (
    STILL, CLAP_FAST, CLAP_LIGHT, PALMS_LR, PALMS_TB, FIST_LR, PENDULUM_LR,
    WAVES_TB, TWIST, WAVE_RIGHT, WAVE_LEFT, WAVE_ALT, RAISE_DROP,
    DIAGONAL_UP_RIGHT, DIAGONAL_UP_LEFT, DIAGONAL, ARMS_OPEN_CLOSE,
    CHEST_OPEN, ARM_CIRCLES, JUMP_IN_PLACE, JUMP_SIDEWAYS, SIDE_STEPS,
    PUSH_PULL, FOLLOW,
)


@dataclass(frozen=True)
class ActionRule:
    name: str
    predicate: Callable[[Summary], bool]
    label: Union[ActionLabel, Callable[[Summary], ActionLabel]]

    def resolve(self, s: Summary) -> ActionLabel:
        if isinstance(self.label, ActionLabel):
            return self.label
        return self.label(s)


def _wave_side(s: Summary) -> ActionLabel:
    return WAVE_RIGHT if s.lr_mean >= 0 else WAVE_LEFT


def _diagonal_direction(s: Summary) -> ActionLabel:
    # tb < 0 means more motion in the top half
    if s.lr_mean >= 0 and s.tb_mean <= 0:
        return DIAGONAL_UP_RIGHT
    if s.lr_mean < 0 and s.tb_mean <= 0:
        return DIAGONAL_UP_LEFT
    return DIAGONAL


ACTION_RULES: Tuple[ActionRule, ...] = (
    ActionRule("still",
               lambda s: s.energy_mean < 1.6 and s.lr_abs_mean < 0.05 and s.tb_abs_mean < 0.05,
               STILL),

    ActionRule("clap_fast",
               lambda s: s.peak_count >= 6 and s.center_mean > 0.42,
               CLAP_FAST),
    ActionRule("clap_light",
               lambda s: s.peak_count >= 3 and s.center_mean > 0.42,
               CLAP_LIGHT),

    ActionRule("palms_lr",
               lambda s: s.center_mean > 0.48 and s.lr_switch_count >= 3 and s.lr_abs_mean > 0.07,
               PALMS_LR),
    ActionRule("palms_tb",
               lambda s: s.center_mean > 0.48 and s.tb_switch_count >= 3 and s.tb_abs_mean > 0.07,
               PALMS_TB),
    ActionRule("fist_lr",
               lambda s: s.center_mean > 0.45 and s.lr_switch_count >= 3 and s.lr_abs_mean > 0.08,
               FIST_LR),

    ActionRule("pendulum_lr",
               lambda s: s.lr_switch_count >= 4 and s.lr_abs_mean > 0.08,
               PENDULUM_LR),
    ActionRule("waves_tb",
               lambda s: s.tb_switch_count >= 4 and s.tb_abs_mean > 0.08,
               WAVES_TB),

    ActionRule("twist",
               lambda s: s.lr_abs_mean > 0.14 and s.tb_abs_mean > 0.14,
               TWIST),

    ActionRule("wave",
               lambda s: s.lr_abs_mean > 0.12 and s.lr_switch_count <= 1 and s.energy_mean > 2.4,
               _wave_side),
    ActionRule("wave_alt",
               lambda s: s.lr_abs_mean > 0.1 and s.lr_switch_count >= 2,
               WAVE_ALT),

    ActionRule("raise_drop",
               lambda s: s.tb_abs_mean > 0.12 and s.tb_switch_count <= 1 and s.energy_mean > 2.6,
               RAISE_DROP),

    ActionRule("diagonal",
               lambda s: s.lr_abs_mean > 0.09 and s.tb_abs_mean > 0.09,
               _diagonal_direction),

    ActionRule("arms_open_close",
               lambda s: (s.energy_mean > 3.6 and s.center_mean < 0.32
                          and s.lr_abs_mean < 0.08 and s.tb_abs_mean < 0.08),
               ARMS_OPEN_CLOSE),
    ActionRule("chest_open",
               lambda s: (s.energy_mean > 3.0 and s.center_mean > 0.4
                          and s.lr_abs_mean < 0.08 and s.tb_abs_mean < 0.08),
               CHEST_OPEN),
    ActionRule("arm_circles",
               lambda s: s.energy_mean > 3.2 and s.lr_abs_mean < 0.1 and s.tb_abs_mean < 0.1,
               ARM_CIRCLES),

    ActionRule("jump_in_place",
               lambda s: (s.energy_mean > 3.4 and s.peak_count >= 2
                          and s.lr_abs_mean < 0.07 and s.tb_abs_mean < 0.07),
               JUMP_IN_PLACE),
    ActionRule("jump_sideways",
               lambda s: (s.energy_mean > 3.2 and s.peak_count >= 2
                          and s.lr_abs_mean > 0.1 and s.tb_abs_mean < 0.1),
               JUMP_SIDEWAYS),
    ActionRule("side_steps",
               lambda s: (2.0 < s.energy_mean < 3.2
                          and s.lr_abs_mean < 0.09 and s.tb_abs_mean < 0.09),
               SIDE_STEPS),

    ActionRule("push_pull",
               lambda s: (s.center_mean > 0.45 and s.energy_mean > 2.2
                          and s.lr_abs_mean < 0.07 and s.tb_abs_mean < 0.07),
               PUSH_PULL),
)


def classify(summary: Summary, rules: Tuple[ActionRule, ...] = ACTION_RULES) -> ActionLabel:
    """Return the label of the first matching rule, or FOLLOW."""
    for rule in rules:
        if rule.predicate(summary):
            return rule.resolve(summary)
    return FOLLOW


def matching_rule(summary: Summary, rules: Tuple[ActionRule, ...] = ACTION_RULES):
    """Name of the rule that classify() would fire, None for the fallback."""
    for rule in rules:
        if rule.predicate(summary):
            return rule.name
    return None
