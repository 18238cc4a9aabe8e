import threading

import pytest

from simenv.backends.reference import ReferenceWorld
from simenv.errors import TransactionError


def test_mutation_requires_transaction(loaded_world):
    with pytest.raises(TransactionError):
        loaded_world.save_state(None)
    with pytest.raises(TransactionError):
        loaded_world.step_physics("txn", 1)


def test_closed_transaction_is_rejected(loaded_world):
    with loaded_world.transaction() as txn:
        loaded_world.save_state(txn)
    assert not txn.active
    with pytest.raises(TransactionError, match="closed"):
        loaded_world.restore_state(txn)


def test_transaction_of_another_world(loaded_world, logger):
    other = ReferenceWorld(logger=logger)
    try:
        with other.transaction() as foreign:
            with pytest.raises(TransactionError, match="another world"):
                loaded_world.save_state(foreign)
    finally:
        other.close()


def test_transaction_used_from_another_thread(loaded_world):
    errors = []

    def worker(txn):
        try:
            loaded_world.save_state(txn)
        except TransactionError as e:
            errors.append(e)

    with loaded_world.transaction() as txn:
        t = threading.Thread(target=worker, args=(txn,))
        t.start()
        t.join()
    assert len(errors) == 1
    assert "another thread" in str(errors[0])


def test_nested_transaction_reuses_handle(loaded_world):
    with loaded_world.transaction() as outer:
        with loaded_world.transaction() as inner:
            assert inner is outer
        # leaving the inner block does not close the outer transaction
        assert outer.active
        loaded_world.save_state(outer)
    assert not outer.active


def test_lock_is_held_for_the_whole_block(loaded_world):
    acquired = []

    def try_lock():
        got = loaded_world._lock.acquire(blocking=False)
        acquired.append(got)
        if got:
            loaded_world._lock.release()

    with loaded_world.transaction():
        t = threading.Thread(target=try_lock)
        t.start()
        t.join()
    t = threading.Thread(target=try_lock)
    t.start()
    t.join()
    assert acquired == [False, True]


def test_reads_do_not_need_a_transaction(loaded_world):
    arm = loaded_world.get_robot("arm")
    assert arm.get_num_dofs() == 2
    assert loaded_world.get_world_state()["arm"].dof_positions.shape == (2,)
    assert loaded_world.check_collision(arm) is False
