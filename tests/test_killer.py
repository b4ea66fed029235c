from conftest import FakeProcessTable, proc

from packages.core.supervisor.killer import ProcessTreeKiller, descendants


def _tree():
    # explorer -> wt -> powershell wrapper -> python target -> worker -> grandchild
    return [
        proc(2, "WindowsTerminal.exe", "wt.exe", parent=1),
        proc(3, "powershell.exe", r"powershell.exe -NoProfile -File C:\Temp\pwsl_s01_ab\pwsl_start_s01.ps1", parent=2),
        proc(10, "python.exe", "python s01.py", parent=3),
        proc(11, "python.exe", "python -c worker", parent=10),
        proc(12, "conhost.exe", "conhost", parent=11),
        proc(13, "node.exe", "node helper.js", parent=10),
        proc(50, "powershell.exe", r"powershell.exe -File C:\Temp\pwsl_s02_cd\pwsl_start_s02.ps1", parent=2),
    ]


def test_descendants_are_deepest_first():
    order = [p.pid for p in descendants(10, _tree())]

    assert set(order) == {11, 12, 13}
    assert order.index(12) < order.index(11)


def test_children_are_killed_before_the_target():
    table = FakeProcessTable(_tree())
    slept = []
    killer = ProcessTreeKiller(table, settle_delay_s=0.25, sleep=slept.append)

    target = table.processes[10]
    assert killer.stop(target, "s01") is True

    kills = [pid for op, pid in table.calls if op == "kill"]
    parent_index = kills.index(10)
    assert {11, 12, 13} <= set(kills[:parent_index])
    assert slept == [0.25]


def test_wrapper_shell_of_the_same_descriptor_is_closed():
    table = FakeProcessTable(_tree())
    killer = ProcessTreeKiller(table, settle_delay_s=0)

    killer.stop(table.processes[10], "s01")

    kills = [pid for op, pid in table.calls if op == "kill"]
    assert kills.count(3) == 1
    assert 50 not in kills
    assert 2 not in kills
    assert 50 in table.processes


def test_child_failure_does_not_abort_teardown():
    table = FakeProcessTable(_tree(), stubborn=[11])
    killer = ProcessTreeKiller(table, settle_delay_s=0)

    assert killer.stop(table.processes[10], "s01") is True
    assert ("kill", 10) in table.calls


def test_falls_back_to_forced_termination():
    table = FakeProcessTable(_tree(), stubborn=[10])
    killer = ProcessTreeKiller(table, settle_delay_s=0)

    assert killer.stop(table.processes[10], "s01") is True
    assert table.calls.index(("kill", 10)) < table.calls.index(("force", 10))


def test_reports_failure_when_target_survives():
    table = FakeProcessTable(_tree(), stubborn=[10])
    table.force_proof.add(10)
    killer = ProcessTreeKiller(table, settle_delay_s=0)

    assert killer.stop(table.processes[10], "s01") is False


def test_already_gone_target_counts_as_stopped():
    table = FakeProcessTable([proc(3, "cmd.exe", "cmd /c python s01.py", parent=2)])
    killer = ProcessTreeKiller(table, settle_delay_s=0)

    gone = proc(10, "python.exe", "python s01.py", parent=3)
    assert killer.stop(gone, "s01") is True
    assert ("kill", 10) not in table.calls
    assert ("kill", 3) in table.calls
