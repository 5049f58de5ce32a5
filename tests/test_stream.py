from chat_backend import stream
from chat_backend.stream import PassThroughChunker, WordChunker, make_chunker, parse_part


def test_parts_are_single_json_lines():
    line = stream.text_part('He said "hi"\n')

    assert line.endswith("\n")
    assert line.count("\n") == 1
    assert parse_part(line) == ("0", 'He said "hi"\n')


def test_tool_parts_shape():
    assert parse_part(stream.tool_call_part("c1", "getWeather", {"city": "Rome"})) == (
        "9",
        {"toolCallId": "c1", "toolName": "getWeather", "args": {"city": "Rome"}},
    )
    assert parse_part(stream.tool_result_part("c1", {"temperature": 20})) == (
        "a",
        {"toolCallId": "c1", "result": {"temperature": 20}},
    )


def test_word_chunker_emits_whole_words_in_order():
    chunker = WordChunker()
    emitted = []
    for delta in ["Hel", "lo wor", "ld, ", "how", " are", " you?"]:
        emitted.extend(chunker.push(delta))
    emitted.append(chunker.flush())

    assert emitted == ["Hello ", "world, ", "how ", "are ", "you?"]
    assert "".join(emitted) == "Hello world, how are you?"


def test_word_chunker_keeps_leading_whitespace_with_next_word():
    chunker = WordChunker()

    assert chunker.push("\n\nTitle ") == ["\n\nTitle "]
    assert chunker.flush() is None


def test_pass_through_keeps_fragments():
    chunker = PassThroughChunker()

    assert chunker.push("Hi") == ["Hi"]
    assert chunker.push("") == []
    assert chunker.flush() is None


def test_make_chunker_modes():
    assert isinstance(make_chunker("word"), WordChunker)
    assert isinstance(make_chunker("none"), PassThroughChunker)
