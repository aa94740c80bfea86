from flappy_neat.controller import AIController
from flappy_neat.game_state import GameState
from flappy_neat.neat_config import FlappyConfigManager, InnovationTracker
from flappy_neat.neat_genome import Genome, crossover
from flappy_neat.population import Population

__all__ = [
    "AIController",
    "FlappyConfigManager",
    "GameState",
    "Genome",
    "InnovationTracker",
    "Population",
    "crossover",
]
