from navigation.cursor import Progress, StepCursor
from navigation.steps import ParsedRoute, parse_route

SCENARIO = "STEP 1: Walk forward 10 steps\nSTEP 2: Turn left at the door\nSTEP 3: Arrive at destination"


def make_cursor(text=SCENARIO):
    return StepCursor(parse_route(text))


def test_starts_at_first_step():
    cursor = make_cursor()
    assert cursor.current_index == 0
    assert cursor.current().instruction_text == "Walk forward 10 steps"
    assert cursor.is_at_first()
    assert not cursor.is_at_last()
    assert cursor.has_next()
    assert not cursor.has_previous()


def test_advance_moves_to_landmark_step():
    cursor = make_cursor()
    step = cursor.advance()
    assert step.instruction_text == "Turn left at the door"
    assert step.is_landmark_reference
    assert cursor.current_index == 1


def test_advance_at_last_is_noop():
    cursor = make_cursor()
    cursor.jump_to(2)
    assert cursor.is_at_last()
    assert cursor.advance() is None
    assert cursor.current_index == 2


def test_retreat_at_first_is_noop():
    cursor = make_cursor()
    assert cursor.retreat() is None
    assert cursor.current_index == 0
    cursor.advance()
    assert cursor.retreat().index == 0


def test_jump_to_out_of_range():
    cursor = make_cursor()
    cursor.jump_to(1)
    assert cursor.jump_to(3) is None
    assert cursor.jump_to(-1) is None
    assert cursor.current_index == 1


def test_progress():
    cursor = make_cursor()
    assert cursor.progress() == Progress(current=1, total=3, percent=33)
    cursor.advance()
    assert cursor.progress() == Progress(current=2, total=3, percent=67)
    cursor.advance()
    assert cursor.progress() == Progress(current=3, total=3, percent=100)


def test_empty_route():
    cursor = StepCursor(ParsedRoute())
    assert cursor.current() is None
    assert cursor.advance() is None
    assert cursor.retreat() is None
    assert cursor.jump_to(0) is None
    assert not cursor.is_at_first()
    assert not cursor.is_at_last()
    assert cursor.progress() == Progress(current=0, total=0, percent=0)
    assert cursor.current_for_speech() == "No navigation steps available."


def test_speech_helpers():
    cursor = make_cursor()
    assert cursor.current_for_speech() == "Step 1 of 3. Walk forward 10 steps"
    assert cursor.steps_for_speech() == "Step 1: Walk forward 10 steps. Step 2: Turn left at the door"
    cursor.jump_to(2)
    assert cursor.steps_for_speech(3) == "Step 3: Arrive at destination"
