from terrabot.actions.structures import DEFAULT_SIZES, blueprint, house


def _cells(items, material=None, layer="tile"):
    return {
        item.cell
        for item in items
        if item.layer == layer and (material is None or item.material == material)
    }


def test_house_shell_door_and_furniture():
    items = house((0, 20), 10, 6, "wood")
    tiles = {item.cell: item.material for item in items if item.layer == "tile"}

    assert all(tiles[(x, 20)] == "wood" for x in range(10))
    assert all(tiles[(x, 15)] == "wood" for x in range(10))
    assert tiles[(0, 19)] == "door"
    assert (0, 18) not in tiles and (0, 17) not in tiles
    assert tiles[(9, 17)] == "wood"
    assert tiles[(8, 16)] == "torch"
    assert tiles[(4, 19)] == "table"
    assert tiles[(6, 19)] == "chair"
    assert (5, 17) in _cells(items, layer="wall")


def test_house_enforces_minimum_size():
    items = house((0, 20), 4, 3, "wood")

    assert max(item.x for item in items) == 9
    assert min(item.y for item in items) == 15


def test_blueprints_have_one_item_per_cell_and_layer():
    for structure, (width, height) in DEFAULT_SIZES.items():
        items = blueprint(structure, (50, 40), width, height, world_height=150)
        keys = [(item.x, item.y, item.layer) for item in items]
        assert items, structure
        assert len(keys) == len(set(keys)), structure


def test_hellevator_reaches_deep():
    items = blueprint("hellevator", (10, 40), 3, 0, world_height=200)

    rope = _cells(items, "rope")
    assert (10, 40) in rope
    assert max(y for _, y in rope) == 169
    assert (9, 90) in _cells(items, "torch")
    assert {(9, 40), (11, 40), (9, 140), (11, 140)} <= _cells(items, "platform")


def test_hellevator_has_one_item_per_cell():
    items = blueprint("hellevator", (10, 40), 3, 0, world_height=200)

    keys = [(item.x, item.y, item.layer) for item in items]
    assert len(keys) == len(set(keys))
    assert (9, 40) not in _cells(items, "torch")


def test_wall_is_three_thick():
    items = blueprint("wall", (0, 10), 3, 10)

    assert {item.x for item in items} == {0, 1, 2}
    assert len(items) == 30


def test_unknown_structure_builds_a_house():
    assert blueprint("castle", (0, 20), 10, 6) == blueprint("house", (0, 20), 10, 6)
