"""
Read-only world snapshot consumed by the colony decision core.

The tick-by-tick simulation (movement, deposition, evaporation, reserve
bookkeeping) lives outside this package. It hands the core a ColonyWorld
describing the grid at one instant: per-cell food and pheromone, the home
cells of each population, colony reserves and the configuration tree.

Grids are numpy arrays indexed ``[x, y]`` with shape ``(width, height)``.

Example:
    >>> world = ColonyWorld.from_cells(
    ...     (5, 5),
    ...     {(2, 2): {"food": 5.0, "pher": 2.0}},
    ...     max_food=5.0, max_pher=4.0,
    ...     homes={"aif": (4, 4), "classic": (0, 0)},
    ... )
    >>> world.food_at((2, 2))
    5.0
"""

import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np
from gymnasium import spaces

logger = logging.getLogger(__name__)

Pos = Tuple[int, int]

DEFAULT_ACTIONS = ("hold", "forage", "return", "pheromone")

DEFAULT_RIVALS = {"aif": "classic", "classic": "aif"}

# Observation keys that are guaranteed to lie in [0, 1].
CLAMPED_OBSERVATION_KEYS = (
    "food", "pher", "food_trace", "pher_trace", "home_prox", "enemy_prox",
    "h", "hunger", "ingest", "friendly_home", "trail_grad", "novelty",
    "dist_home", "reserve_home", "recent_gather", "cargo", "white_space",
)

OBSERVATION_SPACE = spaces.Dict(
    {key: spaces.Box(low=0.0, high=1.0, shape=(), dtype=np.float64)
     for key in CLAMPED_OBSERVATION_KEYS}
)

ACTION_SPACE = spaces.Discrete(len(DEFAULT_ACTIONS))

_NEIGHBOR_OFFSETS = [(dx, dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1)
                     if not (dx == 0 and dy == 0)]


class ColonyWorld:
    """
    Snapshot of the foraging grid as seen by the decision core.

    Args:
        width: Number of grid columns
        height: Number of grid rows
        food: Food per cell, shape (width, height). Zeros when None
        pher: Pheromone per cell, shape (width, height). Zeros when None
        max_food: Normalization ceiling for food
        max_pher: Normalization ceiling for pheromone
        max_dist: Distance normalizer. Defaults to the grid diagonal
        homes: Population id -> home cell
        cell_homes: Cell -> population recorded as owner of that cell.
            Defaults to the inverse of ``homes``
        reserves: Population id -> colony food reserves
        config: Configuration tree (``config["aif"]`` overrides the AIF
            defaults, ``config["hunger"]["queen"]["initial"]`` is the
            reserve normalizer)
        rivals: Population id -> opposing population id

    Attributes:
        observation_space: Dict of Box(0, 1) scalars for every clamped channel
        action_space: Discrete(4) over DEFAULT_ACTIONS

    Raises:
        ValueError: If dimensions are not positive, grid shapes disagree with
            (width, height) or a home lies outside the grid
    """

    observation_space = OBSERVATION_SPACE
    action_space = ACTION_SPACE

    def __init__(
        self,
        width: int,
        height: int,
        food: Optional[np.ndarray] = None,
        pher: Optional[np.ndarray] = None,
        max_food: float = 5.0,
        max_pher: float = 5.0,
        max_dist: Optional[float] = None,
        homes: Optional[Dict[str, Pos]] = None,
        cell_homes: Optional[Dict[Pos, str]] = None,
        reserves: Optional[Dict[str, float]] = None,
        config: Optional[Dict[str, Any]] = None,
        rivals: Optional[Dict[str, str]] = None,
    ):
        if width < 1 or height < 1:
            raise ValueError(f"Grid dimensions must be positive, got {width}×{height}")

        self.width = int(width)
        self.height = int(height)
        self.food = self._as_grid(food, "food")
        self.pher = self._as_grid(pher, "pher")
        self.max_food = float(max_food)
        self.max_pher = float(max_pher)

        self.homes: Dict[str, Pos] = {}
        for species, pos in (homes or {}).items():
            if pos is None:
                continue
            pos = (int(pos[0]), int(pos[1]))
            if not self.in_bounds(pos):
                raise ValueError(
                    f"Home {pos} of '{species}' out of bounds for {self.width}×{self.height} grid"
                )
            self.homes[species] = pos

        if cell_homes is None:
            cell_homes = {pos: species for species, pos in self.homes.items()}
        self.cell_homes: Dict[Pos, str] = {tuple(pos): s for pos, s in cell_homes.items()}

        self.reserves: Dict[str, float] = dict(reserves or {})
        self.config: Dict[str, Any] = dict(config or {})
        self.rivals: Dict[str, str] = dict(DEFAULT_RIVALS if rivals is None else rivals)

        if max_dist is None:
            w = max(1, self.width - 1)
            h = max(1, self.height - 1)
            max_dist = math.sqrt(w * w + h * h)
        self.max_dist = float(max_dist)

        logger.debug(
            f"ColonyWorld {self.width}×{self.height}: max_food={self.max_food}, "
            f"max_pher={self.max_pher}, homes={self.homes}"
        )

    @classmethod
    def from_cells(
        cls,
        size: Tuple[int, int],
        cells: Mapping[Pos, Mapping[str, Any]],
        **kwargs: Any,
    ) -> "ColonyWorld":
        """
        Build a world from a sparse cell map.

        Args:
            size: (width, height)
            cells: {(x, y): {"food": float, "pher": float, "home": species}}
            **kwargs: Remaining ColonyWorld arguments

        Returns:
            ColonyWorld with unspecified cells empty
        """
        width, height = size
        if width < 1 or height < 1:
            raise ValueError(f"Grid dimensions must be positive, got {width}×{height}")
        food = np.zeros((width, height), dtype=np.float64)
        pher = np.zeros((width, height), dtype=np.float64)
        owners: Dict[Pos, str] = {}
        for (x, y), cell in cells.items():
            if not (0 <= x < width and 0 <= y < height):
                raise ValueError(f"Cell {(x, y)} out of bounds for {width}×{height} grid")
            food[x, y] = float(cell.get("food") or 0.0)
            pher[x, y] = float(cell.get("pher") or 0.0)
            if cell.get("home") is not None:
                owners[(x, y)] = cell["home"]

        if "cell_homes" not in kwargs:
            homes = kwargs.get("homes") or {}
            inferred = {tuple(pos): species for species, pos in homes.items() if pos is not None}
            inferred.update(owners)
            kwargs["cell_homes"] = inferred
        return cls(width, height, food=food, pher=pher, **kwargs)

    def _as_grid(self, values: Optional[np.ndarray], name: str) -> np.ndarray:
        if values is None:
            return np.zeros((self.width, self.height), dtype=np.float64)
        grid = np.asarray(values, dtype=np.float64)
        if grid.shape != (self.width, self.height):
            raise ValueError(
                f"{name} grid shape {grid.shape} does not match ({self.width}, {self.height})"
            )
        return grid

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    def in_bounds(self, pos: Optional[Pos]) -> bool:
        if pos is None:
            return False
        x, y = pos
        return 0 <= x < self.width and 0 <= y < self.height

    def food_at(self, pos: Pos) -> float:
        return float(self.food[pos[0], pos[1]]) if self.in_bounds(pos) else 0.0

    def pher_at(self, pos: Pos) -> float:
        return float(self.pher[pos[0], pos[1]]) if self.in_bounds(pos) else 0.0

    def home_owner(self, pos: Pos) -> Optional[str]:
        return self.cell_homes.get(tuple(pos))

    def neighbors(self, pos: Pos) -> List[Pos]:
        """In-bounds cells of the 8-neighbourhood around pos."""
        x, y = pos
        return [(x + dx, y + dy) for dx, dy in _NEIGHBOR_OFFSETS
                if self.in_bounds((x + dx, y + dy))]

    def home_of(self, species: str) -> Optional[Pos]:
        return self.homes.get(species)

    def rival_of(self, species: str) -> Optional[str]:
        return self.rivals.get(species)

    def reserves_of(self, species: str) -> float:
        return float(self.reserves.get(species) or 0.0)

    def queen_initial(self) -> float:
        """Reserve normalizer: the queen's initial store (default 5.0)."""
        queen = (self.config.get("hunger") or {}).get("queen") or {}
        value = queen.get("initial")
        return 5.0 if value is None else float(value)

    def __repr__(self) -> str:
        return (f"ColonyWorld(size={self.size}, max_food={self.max_food}, "
                f"max_pher={self.max_pher}, homes={self.homes})")
