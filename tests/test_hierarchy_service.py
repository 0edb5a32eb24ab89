from tally_sync.services.bulk_loader import BulkLoaderService
from tally_sync.services.hierarchy_service import HierarchyService


def _names(nodes):
    return sorted(node.name for node in nodes)


def _flatten(nodes):
    for node in nodes:
        yield node
        yield from _flatten(node.children)


def test_children_nest_under_parents():
    roots = HierarchyService(db=object()).build([
        {"guid": "1", "name": "Capital Account", "parent": "Primary"},
        {"guid": "2", "name": "Reserves", "parent": "Capital Account"},
        {"guid": "3", "name": "Surplus", "parent": "Reserves"},
    ])

    assert _names(roots) == ["Capital Account"]
    capital = roots[0]
    assert capital.parent == "Primary"
    assert capital.depth == 0
    assert capital.children[0].name == "Reserves"
    assert capital.children[0].children[0].depth == 2


def test_unknown_empty_and_self_parents_become_roots():
    roots = HierarchyService(db=object()).build([
        {"name": "Orphan", "parent": "Missing Group"},
        {"name": "Loner", "parent": ""},
        {"name": "Narcissus", "parent": "Narcissus"},
    ])

    assert _names(roots) == ["Loner", "Narcissus", "Orphan"]
    assert all(not node.children for node in roots)


def test_cycles_terminate_with_every_node_present():
    roots = HierarchyService(db=object()).build([
        {"name": "A", "parent": "B"},
        {"name": "B", "parent": "A"},
        {"name": "C", "parent": "A"},
    ])

    assert sorted(node.name for node in _flatten(roots)) == ["A", "B", "C"]
    assert len(roots) == 1


def test_duplicate_names_keep_the_first_record():
    roots = HierarchyService(db=object()).build([
        {"guid": "first", "name": "Sales", "parent": ""},
        {"guid": "second", "name": "Sales", "parent": ""},
    ])

    assert [node.guid for node in roots] == ["first"]


async def test_tree_reads_tenant_rows(db, tenant, other_tenant):
    loader = BulkLoaderService(db)
    await loader.load("mst_group", "replace", [
        {"guid": "grp-1", "name": "Capital Account", "parent": "Primary"},
        {"guid": "grp-2", "name": "Reserves", "parent": "Capital Account"},
    ], tenant)
    await loader.load("mst_group", "replace", [{"guid": "grp-x", "name": "Elsewhere", "parent": ""}], other_tenant)

    roots = await HierarchyService(db).tree("mst_group", tenant)

    assert _names(roots) == ["Capital Account"]
    assert roots[0].children[0].name == "Reserves"
