"""
SessionEngine - Session Module
Pure per-tick motion pipeline for one play session, no rendering and no
device handling:

    frame → FrameSampler → MotionSignatureExtractor → MotionHistory
          → classify() (web + ref) → SyncScorer → TickResult

All scratch state (previous rasters, histories, EMA baselines, sync rate)
lives on the instance; build a fresh engine per session.
"""

from poetry_dance.ai.action_classifier import classify
from poetry_dance.features.motion_history import MotionHistory
from poetry_dance.features.motion_signature import MotionSignatureExtractor
from poetry_dance.scoring.sync_scorer import SyncScorer, display_group
from poetry_dance.session.results import IDLE_READOUT, TickResult
from poetry_dance.utils.logger import setup_logger
from poetry_dance.vision.frame_sampler import FrameSampler

logger = setup_logger(__name__)

WEBCAM_CROP = {"x": 0.18, "y": 0.12, "w": 0.64, "h": 0.76}
REFERENCE_CROP = {"x": 0.06, "y": 0.06, "w": 0.88, "h": 0.88}


class SessionEngine:

    def __init__(self, sampler_config: dict, engine_config: dict):
        size = sampler_config.get("size", 64)
        webcam_cfg = sampler_config.get("webcam") or {}
        reference_cfg = sampler_config.get("reference") or {}

        self.web_sampler = FrameSampler(
            size=size,
            crop=webcam_cfg.get("crop", WEBCAM_CROP),
            mirror=webcam_cfg.get("mirror", True),
        )
        self.ref_sampler = FrameSampler(
            size=size,
            crop=reference_cfg.get("crop", REFERENCE_CROP),
            mirror=reference_cfg.get("mirror", False),
        )
        self.web_extractor = MotionSignatureExtractor("webcam")
        self.ref_extractor = MotionSignatureExtractor("reference")
        self.web_history = MotionHistory(engine_config)
        self.ref_history = MotionHistory(engine_config)
        self.scorer = SyncScorer(engine_config)
        self.readout = dict(IDLE_READOUT)

    @property
    def sync_rate(self) -> float:
        return self.scorer.sync_rate

    def tick(self, web_frame, ref_frame, now: float) -> TickResult:
        """
        Run one full pipeline step.

        Args:
            web_frame: latest learner frame (None if the camera has nothing yet)
            ref_frame: latest reference frame (None if not decoded yet)
            now: tick timestamp in milliseconds
        """
        web = self.web_extractor.extract(self.web_sampler.sample(web_frame))
        ref = self.ref_extractor.extract(self.ref_sampler.sample(ref_frame))

        self.web_history.append(now, web)
        self.ref_history.append(now, ref)

        web_summary = self.web_history.summarize()
        ref_summary = self.ref_history.summarize()
        web_label = classify(web_summary)
        ref_label = classify(ref_summary)

        scored = self.scorer.score(
            web, ref, self.ref_history.entries,
            web_summary, ref_summary, web_label, ref_label, now,
        )

        group = display_group(web_label, ref_label)
        self.readout = {"web": web_label.name, "ref": ref_label.name, "group": group}

        logger.debug(
            f"tick t={now:.0f} raw={scored.raw:.3f} sync={scored.sync_rate:.3f} "
            f"web={web_label.name} ref={ref_label.name} group={group}"
        )

        return TickResult(
            t=now,
            raw_score=scored.raw,
            sync_rate=scored.sync_rate,
            matched=scored.matched,
            web_action=web_label.name,
            ref_action=ref_label.name,
            group=group,
        )
