import math
import random

import pytest

from flappy_neat.neat_config import InnovationTracker, NeatConfig
from flappy_neat.neat_genome import ConnectionGene, Genome, NodeType, crossover
from flappy_neat.neat_network import NEATNetwork


def make_genome(seed=0, config=None, tracker=None):
    return Genome(random.Random(seed), tracker or InnovationTracker(), config)


def set_all_weights(genome, weight):
    for conn in genome.connections.values():
        conn.weight = weight


def snapshot(genome):
    return (
        sorted(genome.nodes),
        [(c.src, c.tgt, c.weight, c.enabled, c.innovation) for c in genome.connections.values()],
        genome.fitness,
        genome.score,
    )


def test_minimal_topology():
    genome = make_genome()
    assert sorted(genome.nodes) == [0, 1, 2, 3, 4, 5], "Fresh genome should have neurons 0-5."
    assert len(genome.connections) == 5, "Fresh genome should have 5 genes."
    assert all(c.enabled for c in genome.connections.values()), "All initial genes should be enabled."
    assert sorted(c.innovation for c in genome.connections.values()) == [0, 1, 2, 3, 4]
    assert all(c.tgt == 5 for c in genome.connections.values()), "Initial genes should feed the output."
    assert all(-1.0 <= c.weight <= 1.0 for c in genome.connections.values())
    assert genome.nodes[4].type == NodeType.BIAS
    assert genome.nodes[5].type == NodeType.OUTPUT
    assert genome.validate() is True


def test_activate_all_ones_zero_inputs_jumps():
    genome = make_genome()
    set_all_weights(genome, 1.0)
    # Only the bias contributes: sigmoid(1) ~ 0.731
    assert genome.activate([0, 0, 0, 0]) is True


def test_activate_all_ones_negative_inputs_does_not_jump():
    genome = make_genome()
    set_all_weights(genome, 1.0)
    # 1 + 4 * (-1) = -3 -> sigmoid(-3) ~ 0.047
    assert genome.activate([-1, -1, -1, -1]) is False


def test_activate_is_pure():
    genome = make_genome(seed=3)
    before = snapshot(genome)
    sensors = [0.4, 0.2, 0.5, -0.1]
    results = {genome.activate(sensors) for _ in range(10)}
    assert len(results) == 1, "Same inputs should always give the same decision."
    assert snapshot(genome) == before, "activate() must not change the genome."


def test_activate_rejects_wrong_input_size():
    genome = make_genome()
    with pytest.raises(ValueError, match="Input vector size"):
        genome.activate([0.1, 0.2])


def test_mutate_weights_stays_in_bounds():
    genome = make_genome(seed=11)
    set_all_weights(genome, 0.99)
    for _ in range(300):
        genome.mutate_weights()
        assert all(-1.0 <= c.weight <= 1.0 for c in genome.connections.values()), \
            "Weights must be clamped to [-1, 1]."


def test_mutate_weights_changes_weights():
    genome = make_genome(seed=5)
    before = [c.weight for c in genome.connections.values()]
    genome.mutate_weights()
    after = [c.weight for c in genome.connections.values()]
    assert before != after


def test_add_connection_on_minimal_genome_has_no_candidates():
    genome = make_genome()
    assert genome.candidate_connections() == []
    assert genome.mutate_add_connection() is None
    assert len(genome.connections) == 5


def test_add_node_splits_connection():
    genome = make_genome(seed=2)
    new_id = genome.mutate_add_node()

    assert new_id == 6, "First hidden neuron should get id 6."
    assert genome.nodes[6].type == NodeType.HIDDEN
    disabled = [c for c in genome.connections.values() if not c.enabled]
    assert len(disabled) == 1, "Split connection should be disabled, not removed."
    old = disabled[0]
    into = genome.connections[(old.src, 6)]
    out_of = genome.connections[(6, old.tgt)]
    assert into.weight == 1.0
    assert out_of.weight == old.weight
    assert len(genome.connections) == 7
    assert genome.validate() is True


def test_add_node_preserves_behaviour_with_identity_hidden():
    genome = make_genome(seed=8)
    sensors = [0.3, 0.7, 0.1, 0.9]
    before = NEATNetwork(genome).activate(sensors)
    genome.mutate_add_node()
    after = NEATNetwork(genome).activate(sensors)
    assert after == pytest.approx(before)


def test_add_connection_after_split_is_feed_forward():
    genome = make_genome(seed=4)
    genome.mutate_add_node()
    candidates = genome.candidate_connections()
    assert candidates, "A hidden neuron should open new connection candidates."
    for src, tgt in candidates:
        assert genome.nodes[src].type != NodeType.OUTPUT
        assert genome.nodes[tgt].type in (NodeType.HIDDEN, NodeType.OUTPUT)
    gene = genome.mutate_add_connection()
    assert gene is not None
    assert genome.validate() is True


def test_topology_stays_valid_under_heavy_mutation():
    config = NeatConfig(add_connection_rate=0.6, add_node_rate=0.3)
    genome = make_genome(seed=21, config=config)
    for _ in range(150):
        genome.mutate()
        for conn in genome.connections.values():
            assert conn.src in genome.nodes and conn.tgt in genome.nodes, "Dangling gene endpoint."
            assert genome.nodes[conn.src].type != NodeType.OUTPUT, "Gene leaving the output neuron."
            assert genome.nodes[conn.tgt].type not in (NodeType.INPUT, NodeType.BIAS), \
                "Gene entering a sensor or the bias."
        assert genome.validate() is True
    assert len(genome.nodes) > 6, "Heavy structural mutation should have added neurons."
    assert isinstance(genome.activate([0.5, 0.5, 0.5, 0.0]), bool)


def test_shared_tracker_aligns_identical_splits():
    tracker = InnovationTracker()
    a = make_genome(seed=1, tracker=tracker)
    b = a.copy()
    conn = a.connections[(2, 5)]
    for genome in (a, b):
        for c in genome.connections.values():
            c.enabled = c.innovation == conn.innovation
        genome.mutate_add_node()

    assert set(a.nodes) == set(b.nodes)
    assert sorted(c.innovation for c in a.connections.values()) == \
        sorted(c.innovation for c in b.connections.values())


def test_copy_is_independent():
    genome = make_genome(seed=6)
    genome.fitness = 12.5
    genome.score = 3
    clone = genome.clone()
    assert snapshot(clone) == snapshot(genome)

    clone.mutate_add_node()
    set_all_weights(clone, 0.0)
    clone.fitness = 0.0
    assert len(genome.nodes) == 6
    assert len(genome.connections) == 5
    assert genome.fitness == 12.5
    assert all(c.weight != 0.0 for c in genome.connections.values())


def test_crossover_identical_topology_keeps_counts():
    a = make_genome(seed=9)
    b = a.copy()
    set_all_weights(b, 0.5)
    a.fitness, b.fitness = 1.0, 2.0

    child = crossover(a, b)
    assert len(child.nodes) == len(a.nodes) == len(b.nodes)
    assert len(child.connections) == len(a.connections)
    for key, conn in child.connections.items():
        assert conn.weight in (a.connections[key].weight, b.connections[key].weight)
        assert conn is not a.connections[key] and conn is not b.connections[key]


def test_crossover_keeps_dominant_structure():
    tracker = InnovationTracker()
    strong = make_genome(seed=12, tracker=tracker)
    weak = strong.copy()
    strong.mutate_add_node()
    strong.fitness, weak.fitness = 10.0, 1.0

    child = crossover(weak, strong)
    assert set(child.nodes) == set(strong.nodes)
    assert set(child.connections) == set(strong.connections)
    for key, conn in child.connections.items():
        assert conn.enabled == strong.connections[key].enabled
    assert child.validate() is True


def test_crossover_creates_missing_neurons():
    dominant = make_genome(seed=13)
    dominant.connections[(0, 7)] = ConnectionGene(0, 7, 0.3, True, 40)
    dominant.connections[(7, 5)] = ConnectionGene(7, 5, 0.3, True, 41)
    dominant.fitness = 5.0
    other = make_genome(seed=14)

    child = crossover(dominant, other)
    assert 7 in child.nodes
    assert child.nodes[7].type == NodeType.HIDDEN


def test_calculate_fitness_sources():
    genome = make_genome()
    genome.fitness = 42.0
    genome.score = 3
    assert genome.calculate_fitness("episode") == 42.0
    assert genome.calculate_fitness("score") == 3.0
    assert math.isclose(genome.fitness, 3.0)
