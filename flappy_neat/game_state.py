# game_state.py
"""
Per-tick snapshot handed over by the physics collaborator, and the helpers that
turn raw pipe bodies into the pipe pair the bird has to fly through next.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass
class Position:
    x: float
    y: float


@dataclass
class BirdState:
    position: Position
    score: Optional[int] = None


@dataclass
class Pipe:
    """A single pipe body; position is the body centre."""
    position: Position
    is_top: bool
    height: float
    width: float


@dataclass
class PipePair:
    x: float
    top_y: float
    bottom_y: float
    gap_center: float
    width: float


@dataclass
class GameState:
    bird: Optional[BirdState]
    pipes: List[Pipe] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "GameState":
        """
        Build a snapshot from the collaborator's plain dict:
        {"bird": {"position": {"x", "y"}, "score"}, "pipes": [{"position", "isTop", "height", "width"}]}
        Malformed pipes are dropped; a malformed bird leaves bird as None.
        """
        if not isinstance(data, dict):
            logger.debug(f"Ignoring malformed game state: {data!r}")
            return cls(bird=None, pipes=[])

        bird = None
        try:
            raw_bird = data["bird"]
            score = raw_bird.get("score")
            bird = BirdState(
                position=_parse_position(raw_bird["position"]),
                score=int(score) if isinstance(score, (int, float)) and not isinstance(score, bool) else None,
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.debug(f"Ignoring malformed bird state: {type(e).__name__}, {e}")

        raw_pipes = data.get("pipes")
        if raw_pipes is None:
            raw_pipes = []
        elif not isinstance(raw_pipes, (list, tuple)):
            logger.debug(f"Ignoring malformed pipe list: {raw_pipes!r}")
            raw_pipes = []

        pipes = []
        for raw_pipe in raw_pipes:
            try:
                pipes.append(Pipe(
                    position=_parse_position(raw_pipe["position"]),
                    is_top=bool(raw_pipe["isTop"]),
                    height=float(raw_pipe["height"]),
                    width=float(raw_pipe["width"]),
                ))
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Ignoring malformed pipe {raw_pipe!r}: {type(e).__name__}, {e}")
        return cls(bird=bird, pipes=pipes)


def _parse_position(raw: dict) -> Position:
    return Position(x=float(raw["x"]), y=float(raw["y"]))


def group_pipes_by_position(pipes: List[Pipe], tolerance: float = 20.0) -> List[PipePair]:
    """Match each top pipe with the first bottom pipe at (nearly) the same x."""
    pairs = []
    bottoms = [pipe for pipe in pipes if not pipe.is_top]
    for top in (pipe for pipe in pipes if pipe.is_top):
        bottom = next(
            (pipe for pipe in bottoms if abs(pipe.position.x - top.position.x) < tolerance),
            None,
        )
        if bottom is None:
            continue
        # Positions are body centres: the gap runs from the top pipe's lower edge to the bottom pipe's upper edge
        top_edge = top.position.y + top.height / 2
        bottom_edge = bottom.position.y - bottom.height / 2
        pairs.append(PipePair(
            x=top.position.x,
            top_y=top.position.y,
            bottom_y=bottom.position.y,
            gap_center=top_edge + (bottom_edge - top_edge) / 2,
            width=top.width,
        ))
    return pairs


def find_next_pipe_pair(pairs: List[PipePair], bird_x: float, lookbehind: float = 30.0) -> Optional[PipePair]:
    """Nearest pair that is still ahead of the bird (or within lookbehind of it)."""
    ahead = [pair for pair in pairs if pair.x > bird_x - lookbehind]
    if not ahead:
        return None
    return min(ahead, key=lambda pair: pair.x)
