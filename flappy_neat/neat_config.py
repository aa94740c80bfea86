# neat_config.py
"""
Configuration management for the Flappy Bird NEAT agent.
Centralizes all tunable parameters and provides typed access with fallback defaults.
"""

from configparser import ConfigParser
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

# Fixed network shape: 4 sensors + bias -> 1 output
NUM_INPUTS = 4
BIAS_ID = 4
OUTPUT_ID = 5
FIRST_HIDDEN_ID = 6

PARAMETERS_FILE = "config.properties"


class InnovationTracker:
    """
    Tracks and assigns unique innovation numbers for new connections.
    Ensures consistent crossover alignment across the population.

    Hidden neuron ids are handed out here as well, keyed by the innovation of the
    connection that was split, so the same split in two lineages yields the same neuron.
    """

    def __init__(self):
        self.counter = 0
        self.connection_history: Dict[Tuple[int, int], int] = {}  # (src, tgt): innovation_number
        self.split_history: Dict[int, int] = {}  # split innovation: hidden neuron id
        self.next_neuron_id = FIRST_HIDDEN_ID

        # Minimal topology always owns innovations 0..4
        for src in range(BIAS_ID + 1):
            self.get_innovation_number(src, OUTPUT_ID)

    def get_innovation_number(self, src: int, tgt: int) -> int:
        key = (src, tgt)
        if key not in self.connection_history:
            self.connection_history[key] = self.counter
            self.counter += 1
        return self.connection_history[key]

    def get_split_neuron_id(self, innovation: int) -> int:
        if innovation not in self.split_history:
            self.split_history[innovation] = self.next_neuron_id
            self.next_neuron_id += 1
        return self.split_history[innovation]

    def __repr__(self):
        return f"InnovationTracker(innovations={self.counter}, neurons={self.next_neuron_id})"


@dataclass
class NeatConfig:
    """Mutation and crossover parameters for a single genome."""
    weight_mutation_rate: float = 0.8
    add_connection_rate: float = 0.03
    add_node_rate: float = 0.01
    weight_perturb_rate: float = 0.9
    weight_perturb_step: float = 0.1
    weight_range: float = 1.0
    hidden_activation: str = "identity"
    crossover_inherit_rate: float = 0.5


@dataclass
class PopulationConfig:
    """Generational replacement parameters."""
    population_size: int = 50
    elite_fraction: float = 0.1
    tournament_size: int = 3
    fitness_source: str = "episode"  # "episode" or "score"
    random_seed: Optional[int] = None


@dataclass
class ControllerConfig:
    """Episode lifecycle and decision policy parameters."""
    max_frames_per_genome: int = 1000
    jump_cooldown: int = 10
    safety_jump_cooldown: int = 5
    heuristic_generations: int = 5
    exploration_rate: float = 0.3
    heuristic_margin: float = 20.0
    top_boundary: float = 30.0
    bottom_margin: float = 70.0
    pipe_pair_tolerance: float = 20.0
    pipe_lookbehind: float = 30.0
    stagnation_threshold: int = 15
    stagnation_check_interval: int = 10
    debug_log_interval: int = 60


@dataclass
class ScreenConfig:
    """Play area dimensions used to normalize sensors."""
    width: float = 400.0
    height: float = 800.0


@dataclass
class FitnessConfig:
    """Reward shaping weights."""
    survival_reward: float = 1.0
    gap_bonus: float = 1.0
    gap_bonus_radius: float = 50.0
    score_bonus: float = 500.0


HIDDEN_ACTIVATIONS = ("identity", "sigmoid", "tanh")
FITNESS_SOURCES = ("episode", "score")


class FlappyConfigManager:
    """
    Centralized configuration management for the NEAT agent.
    Provides typed access to configuration parameters with fallback defaults.
    """

    def __init__(self, config_file: str = PARAMETERS_FILE):
        self.config = ConfigParser()
        self.config.read(config_file)

        self._neat_config: Optional[NeatConfig] = None
        self._population_config: Optional[PopulationConfig] = None
        self._controller_config: Optional[ControllerConfig] = None
        self._screen_config: Optional[ScreenConfig] = None
        self._fitness_config: Optional[FitnessConfig] = None

    @property
    def neat_config(self) -> NeatConfig:
        if self._neat_config is None:
            self._neat_config = self._load_neat_config()
        return self._neat_config

    @property
    def population_config(self) -> PopulationConfig:
        if self._population_config is None:
            self._population_config = self._load_population_config()
        return self._population_config

    @property
    def controller_config(self) -> ControllerConfig:
        if self._controller_config is None:
            self._controller_config = self._load_controller_config()
        return self._controller_config

    @property
    def screen_config(self) -> ScreenConfig:
        if self._screen_config is None:
            self._screen_config = ScreenConfig(
                width=self.config.getfloat("SCREEN", "width", fallback=400.0),
                height=self.config.getfloat("SCREEN", "height", fallback=800.0),
            )
            if self._screen_config.width <= 0 or self._screen_config.height <= 0:
                raise ValueError("Screen dimensions must be positive.")
        return self._screen_config

    @property
    def fitness_config(self) -> FitnessConfig:
        if self._fitness_config is None:
            self._fitness_config = FitnessConfig(
                survival_reward=self.config.getfloat("FITNESS", "survival_reward", fallback=1.0),
                gap_bonus=self.config.getfloat("FITNESS", "gap_bonus", fallback=1.0),
                gap_bonus_radius=self.config.getfloat("FITNESS", "gap_bonus_radius", fallback=50.0),
                score_bonus=self.config.getfloat("FITNESS", "score_bonus", fallback=500.0),
            )
        return self._fitness_config

    def _load_neat_config(self) -> NeatConfig:
        neat = NeatConfig(
            weight_mutation_rate=self.config.getfloat("NEAT", "weight_mutation_rate", fallback=0.8),
            add_connection_rate=self.config.getfloat("NEAT", "add_connection_rate", fallback=0.03),
            add_node_rate=self.config.getfloat("NEAT", "add_node_rate", fallback=0.01),
            weight_perturb_rate=self.config.getfloat("NEAT", "weight_perturb_rate", fallback=0.9),
            weight_perturb_step=self.config.getfloat("NEAT", "weight_perturb_step", fallback=0.1),
            weight_range=self.config.getfloat("NEAT", "weight_range", fallback=1.0),
            hidden_activation=self.config.get("NEAT", "hidden_activation", fallback="identity"),
            crossover_inherit_rate=self.config.getfloat("NEAT", "crossover_inherit_rate", fallback=0.5),
        )
        for name in ("weight_mutation_rate", "add_connection_rate", "add_node_rate",
                     "weight_perturb_rate", "crossover_inherit_rate"):
            _check_probability(name, getattr(neat, name))
        if neat.weight_range <= 0:
            raise ValueError("weight_range must be positive.")
        if neat.hidden_activation not in HIDDEN_ACTIVATIONS:
            raise ValueError(f"Unknown hidden_activation '{neat.hidden_activation}'.")
        return neat

    def _load_population_config(self) -> PopulationConfig:
        seed = self.config.get("POPULATION", "random_seed", fallback="")
        population = PopulationConfig(
            population_size=self.config.getint("POPULATION", "population_size", fallback=50),
            elite_fraction=self.config.getfloat("POPULATION", "elite_fraction", fallback=0.1),
            tournament_size=self.config.getint("POPULATION", "tournament_size", fallback=3),
            fitness_source=self.config.get("POPULATION", "fitness_source", fallback="episode"),
            random_seed=int(seed) if seed.strip() else None,
        )
        if population.population_size < 1:
            raise ValueError("population_size must be at least 1.")
        if population.tournament_size < 1:
            raise ValueError("tournament_size must be at least 1.")
        _check_probability("elite_fraction", population.elite_fraction)
        if population.fitness_source not in FITNESS_SOURCES:
            raise ValueError(f"Unknown fitness_source '{population.fitness_source}'.")
        return population

    def _load_controller_config(self) -> ControllerConfig:
        section = "CONTROLLER"
        controller = ControllerConfig(
            max_frames_per_genome=self.config.getint(section, "max_frames_per_genome", fallback=1000),
            jump_cooldown=self.config.getint(section, "jump_cooldown", fallback=10),
            safety_jump_cooldown=self.config.getint(section, "safety_jump_cooldown", fallback=5),
            heuristic_generations=self.config.getint(section, "heuristic_generations", fallback=5),
            exploration_rate=self.config.getfloat(section, "exploration_rate", fallback=0.3),
            heuristic_margin=self.config.getfloat(section, "heuristic_margin", fallback=20.0),
            top_boundary=self.config.getfloat(section, "top_boundary", fallback=30.0),
            bottom_margin=self.config.getfloat(section, "bottom_margin", fallback=70.0),
            pipe_pair_tolerance=self.config.getfloat(section, "pipe_pair_tolerance", fallback=20.0),
            pipe_lookbehind=self.config.getfloat(section, "pipe_lookbehind", fallback=30.0),
            stagnation_threshold=self.config.getint(section, "stagnation_threshold", fallback=15),
            stagnation_check_interval=self.config.getint(section, "stagnation_check_interval", fallback=10),
            debug_log_interval=self.config.getint(section, "debug_log_interval", fallback=60),
        )
        _check_probability("exploration_rate", controller.exploration_rate)
        if controller.max_frames_per_genome < 1:
            raise ValueError("max_frames_per_genome must be at least 1.")
        return controller

    def get_file_paths(self) -> dict[str, str]:
        return {
            'output': self.config.get("FILES", "OUTPUT", fallback="output/"),
        }


def _check_probability(name: str, value: float):
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be within [0, 1], got {value}.")
