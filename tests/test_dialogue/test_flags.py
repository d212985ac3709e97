from branchtalk.dialogue.flags import FlagStore, InMemoryFlagStore


def test_absent_flags_are_false(flags):
    assert flags.get_flag("met_guard") is False
    assert "met_guard" not in flags


def test_set_and_clear(flags):
    flags.set_flag("met_guard", True)
    assert flags.get_flag("met_guard") is True
    assert len(flags) == 1

    flags.clear_flag("met_guard")
    assert flags.get_flag("met_guard") is False


def test_snapshot_and_restore():
    flags = InMemoryFlagStore({"a": True, "b": 0})
    saved = flags.snapshot()

    flags.set_flag("c", True)
    assert saved == {"a": True, "b": False}

    flags.restore(saved)
    assert flags.get_flag("c") is False
    assert flags.get_flag("a") is True


def test_satisfies_protocol(flags):
    assert isinstance(flags, FlagStore)
