# controller.py
"""
Episode controller: decides once per tick whether the bird jumps, keeps score of the
live genome and walks the population one genome (episode) at a time.
"""

import logging
import random
import traceback
from typing import List, Optional, Union

from flappy_neat.game_state import (
    GameState,
    PipePair,
    Position,
    find_next_pipe_pair,
    group_pipes_by_position,
)
from flappy_neat.neat_config import FlappyConfigManager
from flappy_neat.neat_genome import Genome
from flappy_neat.population import Population

logger = logging.getLogger(__name__)


class AIController:
    """
    Drives the NEAT population from the game loop.

    The embedding session owns the instance: create it once, feed it every tick through
    process_game_state(), report collisions through handle_game_over() and call reset()
    to start over.
    """

    def __init__(
            self,
            population_size: Optional[int] = None,
            rng: Optional[random.Random] = None,
            config_manager: Optional[FlappyConfigManager] = None,
    ):
        self.config_manager = config_manager or FlappyConfigManager()
        self.population_config = self.config_manager.population_config
        self.config = self.config_manager.controller_config
        self.screen = self.config_manager.screen_config
        self.fitness_config = self.config_manager.fitness_config

        self.rng = rng or random.Random(self.population_config.random_seed)
        self._population_size = (population_size if population_size is not None
                                 else self.population_config.population_size)
        self.population = self._new_population()

        self.current_genome: Optional[Genome] = None
        self.current_genome_index = 0
        self.frame_count = 0
        self.jump_cooldown = 0
        self.current_score = 0
        self.best_score = 0
        self.stagnation_count = 0
        self.total_genomes_tested = 0
        self.last_jump_y: Optional[float] = None

        logger.info(f"Created new AI population with size {self._population_size}")

    @classmethod
    def from_config_file(cls, config_file: str, rng: Optional[random.Random] = None) -> "AIController":
        return cls(rng=rng, config_manager=FlappyConfigManager(config_file))

    def _new_population(self) -> Population:
        return Population(
            self._population_size,
            rng=self.rng,
            config=self.population_config,
            neat_config=self.config_manager.neat_config,
        )

    # ----------------------------
    # Telemetry
    # ----------------------------

    @property
    def generation(self) -> int:
        return self.population.generation

    @property
    def current_fitness(self) -> float:
        return self.current_genome.fitness if self.current_genome else 0.0

    @property
    def population_size(self) -> int:
        return self.population.population_size

    def get_state(self) -> dict:
        """Returns a dictionary snapshot for the stats overlay."""
        return {
            "generation": self.generation,
            "fitness": self.current_fitness,
            "best_score": self.best_score,
            "genome_index": self.current_genome_index,
            "population_size": self.population_size,
            "score": self.current_score,
            "genomes_tested": self.total_genomes_tested,
            "last_jump_y": self.last_jump_y,
        }

    # ----------------------------
    # Episode lifecycle
    # ----------------------------

    def start_next_genome(self):
        """Make the next genome live, evolving first if the generation is used up."""
        if self.current_genome_index >= len(self.population.genomes):
            self.evolve_population()
            self.current_genome_index = 0

        self.current_genome = self.population.genomes[self.current_genome_index]
        self.current_genome.reset_episode()
        self.frame_count = 0
        self.current_score = 0
        self.jump_cooldown = 0
        self.current_genome_index += 1
        self.total_genomes_tested += 1

        logger.debug(
            f"Starting genome {self.current_genome_index} of {len(self.population.genomes)} "
            f"(Generation {self.generation}), total genomes tested: {self.total_genomes_tested}"
        )

    def evolve_population(self):
        """Advance the population one generation. Failures are logged and leave it as it was."""
        logger.info(f"Evolving population from generation {self.generation} to {self.generation + 1}")
        try:
            self.population.evolve()
        except Exception as e:
            logger.error(f"Error during evolution: {type(e).__name__}, {e}\n{traceback.format_exc()}")
            return

        best_genome = self.population.best_genome
        if best_genome is not None and best_genome.score > self.best_score:
            self.best_score = best_genome.score
            logger.info(f"New best score: {self.best_score} (Generation {self.generation})")

        logger.info(f"Evolved to generation {self.generation} ({len(self.population.genomes)} genomes)")

    def force_evolve_to_next_generation(self):
        logger.info("Forcing evolution to next generation")
        self.evolve_population()
        self.current_genome_index = 0
        self.start_next_genome()

    def handle_game_over(self):
        """Close the live episode and move on; repeated zero-score episodes restart everything."""
        if self.current_genome is None:
            self.start_next_genome()
            return

        logger.info(
            f"Game over. Score: {self.current_score}, Fitness: {self.current_genome.fitness:.1f}, "
            f"Generation: {self.generation}, Genome: {self.current_genome_index}/{self.population_size}"
        )

        if self.current_score > self.best_score:
            self.best_score = self.current_score
        if self.current_score == 0:
            self.stagnation_count += 1
        else:
            self.stagnation_count = 0

        if self.stagnation_count >= self.config.stagnation_threshold:
            logger.warning(f"No score in {self.stagnation_count} consecutive episodes. Resetting population.")
            self.reset()
        elif (self.current_genome_index > 0
              and self.current_genome_index % self.config.stagnation_check_interval == 0
              and self.best_score == 0):
            logger.info(f"No progress after {self.current_genome_index} genomes. Forcing evolution.")
            self.force_evolve_to_next_generation()
        else:
            self.start_next_genome()

    def update_score(self, score: int):
        """Record the game score; an increase earns the live genome the scoring bonus."""
        if score > self.current_score and self.current_genome is not None:
            self.current_genome.fitness += self.fitness_config.score_bonus

        self.current_score = score
        if self.current_genome is not None:
            self.current_genome.score = score

    def reset(self):
        logger.info("Resetting AI controller completely")
        self.population = self._new_population()
        self.current_genome = None
        self.current_genome_index = 0
        self.frame_count = 0
        self.jump_cooldown = 0
        self.current_score = 0
        self.best_score = 0
        self.stagnation_count = 0
        self.total_genomes_tested = 0
        self.last_jump_y = None

    # ----------------------------
    # Per-tick decision
    # ----------------------------

    def process_game_state(self, game_state: Union[GameState, dict]) -> bool:
        """Return True if the bird should jump this tick."""
        if not isinstance(game_state, GameState):
            game_state = GameState.from_dict(game_state)

        if self.current_genome is None:
            self.start_next_genome()
            return False

        bird = game_state.bird
        if bird is not None and bird.score is not None:
            self.update_score(bird.score)

        self.frame_count += 1
        if self.frame_count > self.config.max_frames_per_genome:
            logger.info(
                f"Genome {self.current_genome_index} timed out after {self.frame_count} frames. "
                f"Moving to next genome."
            )
            self.handle_game_over()
            return False

        if bird is None:
            return False
        position = bird.position

        if not game_state.pipes:
            # Nothing to aim at: just stay out of the lower half
            return position.y > self.screen.height / 2

        pairs = group_pipes_by_position(game_state.pipes, self.config.pipe_pair_tolerance)
        next_pair = find_next_pipe_pair(pairs, position.x, self.config.pipe_lookbehind)
        if next_pair is None:
            if self._should_log():
                logger.debug("No next pipe pair found")
            return False

        inputs = self.prepare_inputs(position, next_pair)
        self._reward_survival(position.y, next_pair.gap_center)

        if self.jump_cooldown > 0:
            self.jump_cooldown -= 1

        should_jump = self._decide(position.y, next_pair.gap_center, inputs)

        if should_jump and self.jump_cooldown > 0:
            should_jump = False
        if should_jump:
            self.jump_cooldown = self.config.jump_cooldown
            self.last_jump_y = position.y

        # Safety overrides: keep away from the ceiling and the floor
        if position.y < self.config.top_boundary:
            should_jump = False
        elif position.y > self.screen.height - self.config.bottom_margin:
            should_jump = True
            self.jump_cooldown = self.config.safety_jump_cooldown

        return should_jump

    def prepare_inputs(self, position: Position, pipe_pair: PipePair) -> List[float]:
        """Bird height, distance to the pair, gap height and bird-to-gap offset, screen normalized."""
        inputs = [
            position.y / self.screen.height,
            (pipe_pair.x - position.x) / self.screen.width,
            pipe_pair.gap_center / self.screen.height,
            (position.y - pipe_pair.gap_center) / self.screen.height,
        ]
        if self._should_log():
            logger.debug(
                f"AI Inputs: birdY={inputs[0]:.2f}, distToPipe={inputs[1]:.2f}, "
                f"gapY={inputs[2]:.2f}, birdToGap={inputs[3]:.2f}"
            )
        return inputs

    def _reward_survival(self, bird_y: float, gap_center: float):
        genome = self.current_genome
        genome.fitness += self.fitness_config.survival_reward

        radius = self.fitness_config.gap_bonus_radius
        distance = abs(bird_y - gap_center)
        if radius > 0 and distance < radius:
            genome.fitness += self.fitness_config.gap_bonus * (radius - distance) / radius

        genome.score = self.current_score

    def _decide(self, bird_y: float, gap_center: float, inputs: List[float]) -> bool:
        if self.generation >= self.config.heuristic_generations:
            return self.current_genome.activate(inputs)

        # Early generations: aim for the gap centre, letting the network steer now and then
        should_jump = bird_y > gap_center + self.config.heuristic_margin and self.jump_cooldown <= 0
        if self.rng.random() < self.config.exploration_rate:
            should_jump = self.current_genome.activate(inputs)
        return should_jump

    def _should_log(self) -> bool:
        interval = self.config.debug_log_interval
        return interval > 0 and self.frame_count % interval == 0
