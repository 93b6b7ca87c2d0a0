import random
from itertools import product
from pathlib import Path

from workspace_licenses.collector import collect_external_locators, count_direct_workspace_edges
from workspace_licenses.types import Descriptor, Locator, Package, ProjectGraph, Workspace


def make_graph(workspaces, externals, dangling=()):
    """Build a graph where every dependency is requested as ``name@*``.

    ``workspaces`` maps name -> {"deps": [...], "dev": [...]}, ``externals``
    maps name -> [dependency names]. Names listed in ``dangling`` resolve to a
    locator that has no package record.
    """

    root = Path("/repo")
    packages = {}
    resolutions = {}
    ws_objects = []

    for name, shape in workspaces.items():
        locator = Locator(f"packages/{name}")
        workspace = Workspace(
            cwd=root / "packages" / name,
            relative_cwd=f"packages/{name}",
            locator=locator,
            name=name,
            dependencies=[Descriptor(dep, "*") for dep in shape.get("deps", [])],
            dev_dependencies=[Descriptor(dep, "*") for dep in shape.get("dev", [])],
        )
        ws_objects.append(workspace)
        packages[locator.locator_hash] = Package(locator, name, "1.0.0", workspace.dependencies)
        resolutions[Descriptor(name, "*").descriptor_hash] = locator

    for name, deps in externals.items():
        locator = Locator(f"node_modules/{name}")
        packages[locator.locator_hash] = Package(locator, name, "1.0.0", [Descriptor(dep, "*") for dep in deps])
        resolutions[Descriptor(name, "*").descriptor_hash] = locator

    for name in dangling:
        resolutions[Descriptor(name, "*").descriptor_hash] = Locator(f"node_modules/{name}")

    return ProjectGraph(root=root, workspaces=ws_objects, packages=packages, resolutions=resolutions)


def names(locator_hashes):
    return sorted(hash_.rsplit("/", 1)[-1] for hash_ in locator_hashes)


def workspace(graph, name):
    return next(ws for ws in graph.workspaces if ws.name == name)


def fixture_graph():
    return make_graph(
        workspaces={
            "app-web": {"deps": ["app-shared", "ext-web"], "dev": ["ext-dev"]},
            "app-shared": {"deps": ["ext-shared"]},
            "app-mobile": {"deps": ["ext-mobile", "app-shared"]},
        },
        externals={
            "ext-web": ["ext-transitive"],
            "ext-transitive": ["ext-deep"],
            "ext-deep": [],
            "ext-shared": [],
            "ext-dev": ["ext-dev-helper"],
            "ext-dev-helper": [],
            "ext-mobile": [],
        },
    )


def collect(graph, seeds, include_dev=False, recursive_workspaces=False, recursive_npm=False):
    return collect_external_locators(
        graph,
        [workspace(graph, seed) for seed in seeds],
        include_dev=include_dev,
        recursive_workspaces=recursive_workspaces,
        recursive_npm=recursive_npm,
    )


def test_direct_dependencies_only_by_default():
    graph = fixture_graph()
    assert names(collect(graph, ["app-web"])) == ["ext-web"]


def test_recursive_workspaces_follows_workspace_edges_but_not_npm():
    graph = fixture_graph()
    assert names(collect(graph, ["app-web"], recursive_workspaces=True)) == ["ext-shared", "ext-web"]


def test_recursive_npm_follows_third_party_graph_only():
    graph = fixture_graph()
    assert names(collect(graph, ["app-web"], recursive_npm=True)) == ["ext-deep", "ext-transitive", "ext-web"]


def test_both_recursion_flags():
    graph = fixture_graph()
    result = collect(graph, ["app-web"], recursive_workspaces=True, recursive_npm=True)
    assert names(result) == ["ext-deep", "ext-shared", "ext-transitive", "ext-web"]


def test_include_dev_adds_dev_dependencies_of_seeds():
    graph = fixture_graph()
    assert names(collect(graph, ["app-web"], include_dev=True)) == ["ext-dev", "ext-web"]
    assert names(collect(graph, ["app-web"], include_dev=True, recursive_npm=True)) == [
        "ext-deep",
        "ext-dev",
        "ext-dev-helper",
        "ext-transitive",
        "ext-web",
    ]


def test_sub_workspace_deps_reached_when_it_is_also_a_seed():
    graph = fixture_graph()
    assert names(collect(graph, ["app-web", "app-shared"])) == ["ext-shared", "ext-web"]


def test_unresolved_and_dangling_descriptors_are_skipped():
    graph = make_graph(
        workspaces={"app": {"deps": ["ext-a", "missing", "dangling"]}},
        externals={"ext-a": ["missing-too", "dangling"]},
        dangling=["dangling"],
    )
    result = collect(graph, ["app"], recursive_npm=True)
    assert names(result) == ["ext-a"]


def test_shared_workspace_visited_once_and_result_is_a_set():
    graph = make_graph(
        workspaces={
            "a": {"deps": ["shared", "ext-x"]},
            "b": {"deps": ["shared", "ext-x"]},
            "shared": {"deps": ["ext-x", "ext-y"]},
        },
        externals={"ext-x": ["ext-y"], "ext-y": ["ext-x"]},
    )
    result = collect(graph, ["a", "b", "a"], recursive_workspaces=True, recursive_npm=True)
    assert names(result) == ["ext-x", "ext-y"]


def test_third_party_package_depending_on_workspace():
    graph = make_graph(
        workspaces={"app": {"deps": ["ext-plugin"]}, "lib": {"deps": ["ext-lib"]}},
        externals={"ext-plugin": ["lib"], "ext-lib": []},
    )
    assert names(collect(graph, ["app"], recursive_npm=True)) == ["ext-plugin"]
    assert names(collect(graph, ["app"], recursive_npm=True, recursive_workspaces=True)) == [
        "ext-lib",
        "ext-plugin",
    ]


def test_collection_is_deterministic():
    graph = fixture_graph()
    first = collect(graph, ["app-web", "app-mobile"], recursive_workspaces=True, recursive_npm=True)
    second = collect(graph, ["app-web", "app-mobile"], recursive_workspaces=True, recursive_npm=True)
    assert first == second


def _random_graph(seed):
    rng = random.Random(seed)
    ws_names = [f"ws{i}" for i in range(5)]
    ext_names = [f"ext{i}" for i in range(12)]
    candidates = ws_names + ext_names + ["unresolved"]
    workspaces = {
        name: {
            "deps": rng.sample(candidates, rng.randint(0, 4)),
            "dev": rng.sample(candidates, rng.randint(0, 2)),
        }
        for name in ws_names
    }
    externals = {name: rng.sample(candidates, rng.randint(0, 3)) for name in ext_names}
    return make_graph(workspaces, externals)


def test_enabling_flags_never_shrinks_result():
    for seed in range(25):
        graph = _random_graph(seed)
        seeds = ["ws0", "ws1"]
        results = {
            flags: collect(graph, seeds, *flags) for flags in product([False, True], repeat=3)
        }
        for (dev, rec_ws, rec_npm), result in results.items():
            for other_flags, other in results.items():
                if all(o >= f for o, f in zip(other_flags, (dev, rec_ws, rec_npm))):
                    assert result <= other, (seed, (dev, rec_ws, rec_npm), other_flags)


def test_first_depth_guarantee_without_recursion():
    for seed in range(25):
        graph = _random_graph(seed)
        seeds = [workspace(graph, "ws0"), workspace(graph, "ws2")]
        expected = set()
        for ws in seeds:
            for descriptor in ws.dependencies + ws.dev_dependencies:
                locator = graph.resolve(descriptor)
                if locator and graph.package(locator) and not graph.workspace_by_locator(locator):
                    expected.add(locator.locator_hash)
        actual = collect_external_locators(graph, seeds, True, False, False)
        assert actual == expected


def test_count_direct_workspace_edges():
    graph = fixture_graph()
    assert count_direct_workspace_edges(graph, [workspace(graph, "app-web")], include_dev=False) == 1
    assert count_direct_workspace_edges(graph, [workspace(graph, "app-shared")], include_dev=True) == 0
