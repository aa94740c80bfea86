# population.py
"""
Fixed-size population of genomes and the generational replacement step:
elitism, tournament selection, crossover and mutation.
"""

import logging
import random
from typing import List, Optional

import numpy as np
from deap import tools

from flappy_neat.neat_config import InnovationTracker, NeatConfig, PopulationConfig
from flappy_neat.neat_genome import Genome, crossover

logger = logging.getLogger(__name__)


class Population:
    """
    Owns the current generation of genomes and the innovation tracker they share.
    """

    def __init__(
            self,
            size: Optional[int] = None,
            rng: Optional[random.Random] = None,
            config: Optional[PopulationConfig] = None,
            neat_config: Optional[NeatConfig] = None,
    ):
        self.config = config or PopulationConfig()
        self.population_size = size if size is not None else self.config.population_size
        if self.population_size < 1:
            raise ValueError("Population size must be at least 1.")
        self.rng = rng or random.Random(self.config.random_seed)
        self.neat_config = neat_config or NeatConfig()
        self.innovation_tracker = InnovationTracker()

        self.genomes: List[Genome] = []
        self.generation = 0
        self.best_genome: Optional[Genome] = None

        self.stats = tools.Statistics(key=lambda genome: genome.fitness)
        self.stats.register("min", np.min)
        self.stats.register("avg", np.mean)
        self.stats.register("max", np.max)
        self.logbook = tools.Logbook()
        self.logbook.header = ["gen", "min", "avg", "max", "best_score", "nodes", "conns"]

        self.initialize_population()

    def new_genome(self) -> Genome:
        return Genome(self.rng, self.innovation_tracker, self.neat_config)

    def initialize_population(self):
        self.genomes = [self.new_genome() for _ in range(self.population_size)]

    def __len__(self):
        return len(self.genomes)

    def evolve(self):
        """
        Replace the current generation with the next one.
        The new list is built aside and swapped in at the end, so a failure part way
        leaves the genomes, their fitness, the history and the generation counter untouched.
        """
        if not self.genomes:
            logger.error("Cannot evolve empty population. Reinitializing...")
            self.initialize_population()
            return

        episode_fitness = [genome.fitness for genome in self.genomes]
        try:
            for genome in self.genomes:
                genome.calculate_fitness(self.config.fitness_source)

            ranked = tools.selBest(self.genomes, len(self.genomes), fit_attr="fitness")
            best_genome = ranked[0].copy()
            elite_count = max(1, int(self.population_size * self.config.elite_fraction))
            new_genomes = [genome.copy() for genome in ranked[:elite_count]]

            while len(new_genomes) < self.population_size:
                parent1 = self.tournament_select()
                parent2 = self.tournament_select()
                child = crossover(parent1, parent2)
                child.mutate()
                new_genomes.append(child)
        except Exception:
            for genome, fitness in zip(self.genomes, episode_fitness):
                genome.fitness = fitness
            raise

        for genome in new_genomes:
            genome.reset_episode()

        record = self._record_generation(ranked)
        self.genomes = new_genomes[:self.population_size]
        self.best_genome = best_genome
        self.generation += 1
        logger.debug(
            f"Generation {record['gen']} -> {self.generation}: best fitness {record['max']:.2f}, "
            f"avg {record['avg']:.2f}, best score {record['best_score']}"
        )

    def tournament_select(self, tournament_size: Optional[int] = None) -> Genome:
        """Sample with replacement, keep the fittest, return a clone of it."""
        tournament_size = tournament_size or self.config.tournament_size
        best = None
        for _ in range(tournament_size):
            genome = self.genomes[self.rng.randrange(len(self.genomes))]
            if best is None or genome.fitness > best.fitness:
                best = genome
        return best.copy()

    def _record_generation(self, ranked: List[Genome]) -> dict:
        record = self.stats.compile(ranked)
        record = {key: float(value) for key, value in record.items()}
        record.update(
            gen=self.generation,
            best_score=ranked[0].score,
            nodes=float(np.mean([len(g.nodes) for g in ranked])),
            conns=float(np.mean([len(g.enabled_connections()) for g in ranked])),
        )
        self.logbook.record(**record)
        return record

    @property
    def history(self) -> List[dict]:
        return list(self.logbook)

    def get_best(self) -> Genome:
        """Current leader by fitness."""
        return max(self.genomes, key=lambda genome: genome.fitness)

    def __repr__(self):
        return f"Population(size={self.population_size}, generation={self.generation})"
