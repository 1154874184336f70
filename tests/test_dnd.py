import math

import pytest

from client.dnd import (
    DRAG_WATCHDOG_SECONDS,
    OUTCOME_CANCELLED,
    OUTCOME_MOVED,
    OUTCOME_REORDERED,
    OUTCOME_ROLLED_BACK,
    OUTCOME_UNCHANGED,
    TARGET_FOLDER_CONTENT,
    TARGET_FOLDER_HEADER,
    TARGET_HOVERED_FOLDER,
    TARGET_ROOT,
    ContainerTree,
    FileDragController,
    HighlightState,
    HitElement,
    NoteReorderController,
    array_move,
    normalize_container_id,
    resolve_drop_target,
)
from client.note_service import NoteServiceError
from note_constants import ROOT_MARKERS
from services.validation_service import is_root_value


class FakeTimer:
    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function(*self.args)


class FakeService:
    def __init__(self, fail=False):
        self.fail = fail
        self.orders = []
        self.moves = []
        self.note_orders = []

    def _maybe_fail(self):
        if self.fail:
            raise NoteServiceError('server down', status_code=503)

    def update_file_order(self, ids):
        self._maybe_fail()
        self.orders.append(list(ids))

    def move_file(self, file_id, folder_id):
        self._maybe_fail()
        self.moves.append((file_id, folder_id))

    def update_note_order(self, ids):
        self._maybe_fail()
        self.note_orders.append(list(ids))


def folder_header(folder_id):
    return HitElement(f'folder-{folder_id}', attrs={'data-folder-id': folder_id, 'data-is-folder': 'true'})


def folder_content(folder_id):
    return HitElement(
        f'folder-content-{folder_id}',
        attrs={'data-folder-id': folder_id, 'data-folder-content': 'true', 'data-is-folder': 'true'},
    )


def root_area():
    return HitElement('root-files', attrs={'data-is-root-area': 'true'})


def file_el(file_id):
    return HitElement('', classes=('sortable-file-item',), attrs={'data-file-id': file_id})


def sidebar():
    return HitElement('', classes=('sidebar',))


FILES = [
    {'id': 1, 'name': 'A', 'folder_id': None, 'sort_order': 0},
    {'id': 2, 'name': 'B', 'folder_id': None, 'sort_order': 1},
    {'id': 3, 'name': 'C', 'folder_id': None, 'sort_order': 2},
    {'id': 4, 'name': 'D', 'folder_id': 7, 'sort_order': 0},
]


@pytest.fixture
def timers():
    return []


@pytest.fixture
def make_controller(timers):
    def _make(files=FILES, fail=False, expanded=(), **kwargs):
        def timer_factory(*args, **kw):
            timer = FakeTimer(*args, **kw)
            timers.append(timer)
            return timer

        tree = ContainerTree.from_files(files)
        service = FakeService(fail=fail)
        controller = FileDragController(
            tree,
            service,
            is_expanded=lambda folder_id: folder_id in expanded,
            timer_factory=timer_factory,
            **kwargs
        )
        return controller, tree, service
    return _make


def test_root_spellings_are_equivalent():
    for value in (None, '', 0, '0', 'root', 'null'):
        assert normalize_container_id(value) is None
    assert normalize_container_id(7) == '7'


def test_client_and_server_agree_on_root_markers():
    for marker in ROOT_MARKERS:
        assert normalize_container_id(marker) is None
        assert is_root_value(marker)


def test_array_move():
    assert array_move(['A', 'B', 'C'], 2, 0) == ['C', 'A', 'B']
    assert array_move(['A', 'B', 'C'], 0, 2) == ['B', 'C', 'A']


def test_tree_groups_by_container_and_sort_order():
    tree = ContainerTree.from_files([
        {'id': 1, 'folder_id': None, 'sort_order': 1},
        {'id': 2, 'folder_id': '', 'sort_order': 0},
        {'id': 3, 'folder_id': 0},
        {'id': 4, 'folder_id': 5, 'sort_order': 0},
    ])
    assert tree.children(None) == ['2', '1', '3']
    assert tree.children('5') == ['4']
    assert tree.container_of(3) is None
    assert [i['sort_order'] for i in tree.items(None)] == [0, 1, 2]


def test_tree_move_and_snapshot_restore():
    tree = ContainerTree.from_files(FILES)
    snapshot = tree.snapshot()
    tree.move('1', '7')
    assert tree.children('7') == ['4', '1']
    assert tree.children(None) == ['2', '3']
    assert tree.get(1)['folder_id'] == '7'
    tree.restore(snapshot)
    assert tree.children(None) == ['1', '2', '3']
    assert tree.get(1)['folder_id'] is None


def test_tree_reorder_requires_same_members():
    tree = ContainerTree.from_files(FILES)
    with pytest.raises(ValueError):
        tree.reorder(None, ['1', '2'])


def test_resolve_drop_target_priority():
    assert resolve_drop_target([root_area()], hovered_folder_id='9') == (TARGET_HOVERED_FOLDER, '9')
    assert resolve_drop_target([folder_header('3'), folder_content('4')]) == (TARGET_FOLDER_CONTENT, '4')
    assert resolve_drop_target([file_el('1'), folder_header('3'), root_area()]) == (TARGET_FOLDER_HEADER, '3')
    droppable = HitElement('', attrs={'data-droppable-id': 'folder-6'})
    assert resolve_drop_target([droppable]) == (TARGET_FOLDER_HEADER, '6')
    assert resolve_drop_target([file_el('1'), root_area()]) == (TARGET_ROOT, None)
    assert resolve_drop_target([sidebar(), file_el('2')]) is None
    assert resolve_drop_target([]) is None


def test_drag_c_before_a_sends_full_order(make_controller):
    controller, tree, service = make_controller()
    assert controller.start('3')
    outcome = controller.end([file_el('1'), root_area()], x=5, y=5)
    assert outcome == OUTCOME_REORDERED
    assert service.orders == [['3', '1', '2']]
    assert tree.children(None) == ['3', '1', '2']
    assert [tree.get(i)['sort_order'] for i in ('3', '1', '2')] == [0, 1, 2]


def test_drop_without_target_is_a_noop(make_controller):
    controller, tree, service = make_controller()
    before = tree.snapshot()
    controller.start('2')
    assert controller.end([sidebar()], x=1, y=1) == OUTCOME_CANCELLED
    assert tree.snapshot() == before
    assert service.orders == [] and service.moves == []
    assert not controller.dragging


def test_move_to_folder_and_back(make_controller):
    expanded = []
    controller, tree, service = make_controller(on_expand_folder=expanded.append)

    controller.start('1')
    assert controller.end([folder_header('7')], x=3, y=3) == OUTCOME_MOVED
    assert tree.container_of('1') == '7'
    assert tree.children('7') == ['4', '1']
    assert expanded == ['7']

    controller.start('1')
    assert controller.end([root_area()], x=3, y=3) == OUTCOME_MOVED
    assert tree.container_of('1') is None
    assert service.moves == [('1', '7'), ('1', None)]
    assert expanded == ['7']


def test_drop_on_own_folder_makes_no_call(make_controller):
    controller, tree, service = make_controller()
    controller.start('4')
    assert controller.end([folder_content('7')], x=1, y=1) == OUTCOME_UNCHANGED
    assert service.moves == [] and service.orders == []


def test_hovered_folder_overrides_drop_hit_test(make_controller):
    controller, tree, service = make_controller()
    controller.start('2')
    controller.move(10, 10, [folder_header('7')])
    assert controller.end([root_area()], x=10, y=10) == OUTCOME_MOVED
    assert service.moves == [('2', '7')]


def test_failed_move_rolls_back(make_controller):
    errors = []
    controller, tree, service = make_controller(fail=True, on_error=errors.append)
    before = tree.snapshot()
    controller.start('1')
    assert controller.end([folder_content('7')], x=1, y=1) == OUTCOME_ROLLED_BACK
    assert tree.snapshot() == before
    assert tree.container_of('1') is None
    assert len(errors) == 1 and errors[0].status_code == 503


def test_failed_reorder_restores_previous_order(make_controller):
    errors = []
    controller, tree, service = make_controller(fail=True, on_error=errors.append)
    controller.start('3')
    assert controller.end([file_el('1'), root_area()]) == OUTCOME_ROLLED_BACK
    assert tree.children(None) == ['1', '2', '3']
    assert errors


def test_start_unknown_item_aborts(make_controller, timers):
    controller, tree, service = make_controller()
    assert controller.start('99') is False
    assert not controller.dragging
    assert timers == []
    assert controller.end([root_area()]) == OUTCOME_CANCELLED


def test_non_finite_move_keeps_highlight(make_controller):
    controller, tree, service = make_controller()
    controller.start('1')
    controller.move(10, 10, [folder_header('7')])
    controller.move(math.nan, 10, [folder_header('8')])
    controller.move(10, math.inf, [])
    assert controller.hovered_folder_id == '7'
    assert controller.highlight.folder_id == '7'


def test_non_finite_drop_ignores_hit_elements(make_controller):
    controller, tree, service = make_controller()
    controller.start('1')
    assert controller.end([folder_header('7')], x=math.nan, y=1) == OUTCOME_CANCELLED
    assert tree.container_of('1') is None


def test_single_highlight_and_clear_off_folder(make_controller):
    controller, tree, service = make_controller()
    controller.start('1')
    controller.move(1, 1, [folder_header('7')])
    controller.move(1, 2, [folder_content('8')])
    assert controller.highlight.folder_id == '8'
    controller.move(1, 3, [root_area()])
    assert not controller.highlight.active
    assert controller.hovered_folder_id is None


def test_collapsed_folder_highlights_header_only():
    collapsed = HighlightState(is_expanded=lambda folder_id: False)
    collapsed.highlight('7')
    assert collapsed.regions == ('header',)

    expanded = HighlightState(is_expanded=lambda folder_id: True)
    expanded.highlight('7')
    assert expanded.regions == ('header', 'content')
    expanded.highlight('7', header_only=True)
    assert expanded.regions == ('header',)


def test_drag_over_collapsed_folder(make_controller):
    controller, tree, service = make_controller(expanded=())
    controller.start('1')
    controller.move(4, 4, [folder_header('7')])
    assert controller.highlight.regions == ('header',)


def test_watchdog_clears_stuck_drag(make_controller, timers):
    controller, tree, service = make_controller()
    controller.start('1')
    controller.move(1, 1, [folder_header('7')])
    assert timers[0].interval == DRAG_WATCHDOG_SECONDS
    timers[0].fire()
    assert not controller.dragging
    assert not controller.highlight.active
    assert controller.end([folder_header('7')]) == OUTCOME_CANCELLED
    assert service.moves == []


def test_stale_watchdog_does_not_end_next_drag(make_controller, timers):
    controller, tree, service = make_controller()
    controller.start('1')
    controller.end([root_area()])
    assert timers[0].cancelled
    controller.start('2')
    timers[0].fire()
    assert controller.active_id == '2'


def test_note_reorder_and_rollback():
    notes = [
        {'id': 10, 'file_id': 1, 'sort_order': 0},
        {'id': 11, 'file_id': 1, 'sort_order': 1},
        {'id': 12, 'file_id': 1, 'sort_order': 2},
    ]
    tree = ContainerTree.from_notes(notes)
    service = FakeService()
    controller = NoteReorderController(tree, service)
    assert controller.reorder(10, 12) == OUTCOME_REORDERED
    assert service.note_orders == [['11', '12', '10']]
    assert controller.reorder('11', '11') == OUTCOME_UNCHANGED

    failing = NoteReorderController(tree, FakeService(fail=True))
    assert failing.reorder('10', '11') == OUTCOME_ROLLED_BACK
    assert tree.children('1') == ['11', '12', '10']


def test_file_drop_ignores_note_elements(make_controller):
    controller, tree, service = make_controller()
    controller.start('3')
    note_el = HitElement('', attrs={'data-note-id': '1'})
    assert controller.end([note_el, root_area()], x=5, y=5) == OUTCOME_UNCHANGED
    assert service.orders == []
    assert tree.children(None) == ['1', '2', '3']
