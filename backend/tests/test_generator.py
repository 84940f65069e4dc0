"""Storyboard generation tests against a fake AI client."""

import json

import pytest

from storyboard_studio.ai.openai_client import OpenAIClient
from storyboard_studio.errors import ErrorKind, GenerationError
from storyboard_studio.generator import StoryboardGenerator
from storyboard_studio.models import Brief, ReferenceFile
from storyboard_studio.prompts import RESPONSE_FORMAT, SYSTEM_INSTRUCTION


def _cut(number: int) -> dict:
    return {
        "cutNumber": number,
        "visualDescription": f"Wide shot {number}: children walk toward the palace gate",
        "sourceFileName": f"seoul_cut{number:02d}.mp4",
        "subtitles": f"자막 {number}",
        "narration": f"내레이션 {number} (SFX: 발소리)",
        "imagePrompt": f"children at palace gate, frame {number}",
    }


def _payload(cut_count: int = 12) -> str:
    return json.dumps(
        {
            "title": "서울의 역사 유적 탐방",
            "synopsis": "초등학생이 서울의 궁궐을 탐험한다.",
            "cuts": [_cut(n) for n in range(1, cut_count + 1)],
        },
        ensure_ascii=False,
    )


class _FakeAIClient:
    def __init__(self, content: str = "", error: Exception | None = None):
        self.content = content
        self.error = error
        self.calls = []

    def chat(self, messages, model=None, **kwargs):
        self.calls.append({"messages": messages, "model": model, **kwargs})
        if self.error is not None:
            raise self.error
        return {"choices": [{"message": {"role": "assistant", "content": self.content}}]}


def _brief(**overrides) -> Brief:
    values = {
        "topic": "서울의 역사 유적 탐방",
        "purpose": "초등학생 대상 교육",
        "target_audience": "초등학교 3학년",
        "key_concepts": "궁궐의 역할",
        "narrative_flow": "도입 -> 탐험 -> 정리",
        "cut_count": "10~15컷",
        "concept_settings": "주인공 '미나'는 노란색 후드티를 입은 10살 소녀",
    }
    values.update(overrides)
    return Brief(**values)


def test_generate_returns_storyboard_matching_response():
    client = _FakeAIClient(content=_payload(12))

    storyboard = StoryboardGenerator(client).generate(_brief())

    assert storyboard.title == "서울의 역사 유적 탐방"
    assert len(storyboard.cuts) == 12
    for number, cut in enumerate(storyboard.cuts, 1):
        expected = _cut(number)
        assert cut.cut_number == expected["cutNumber"]
        assert cut.visual_description == expected["visualDescription"]
        assert cut.source_file_name == expected["sourceFileName"]
        assert cut.subtitles == expected["subtitles"]
        assert cut.narration == expected["narration"]
        assert cut.image_prompt == expected["imagePrompt"]


def test_request_carries_schema_system_role_and_every_brief_field():
    client = _FakeAIClient(content=_payload(10))
    brief = _brief()

    StoryboardGenerator(client).generate(brief)

    call = client.calls[0]
    assert call["response_format"] == RESPONSE_FORMAT
    system, user = call["messages"]
    assert system == {"role": "system", "content": SYSTEM_INSTRUCTION}
    assert len(user["content"]) == 1
    instruction = user["content"][0]["text"]
    for value in (
        brief.topic,
        brief.purpose,
        brief.target_audience,
        brief.key_concepts,
        brief.narrative_flow,
        brief.cut_count,
        brief.constraints,
        brief.concept_settings,
    ):
        assert value in instruction
    assert "IMPORTANT" not in instruction


def test_missing_concept_text_falls_back_to_attachment_hint():
    client = _FakeAIClient(content=_payload(10))

    StoryboardGenerator(client).generate(_brief(concept_settings=""))

    instruction = client.calls[0]["messages"][1]["content"][0]["text"]
    assert "Refer to the attached file if available." in instruction


def test_pdf_reference_is_sent_as_file_part():
    client = _FakeAIClient(content=_payload(10))
    reference = ReferenceFile.from_bytes("board.pdf", b"%PDF-1.4 board", "application/pdf")

    StoryboardGenerator(client).generate(_brief(reference=reference))

    parts = client.calls[0]["messages"][1]["content"]
    assert "IMPORTANT" in parts[0]["text"]
    assert parts[1] == {
        "type": "file",
        "file": {"filename": "board.pdf", "file_data": reference.data_uri},
    }


def test_image_reference_is_sent_as_image_part():
    client = _FakeAIClient(content=_payload(10))
    reference = ReferenceFile.from_bytes("mina.png", b"\x89PNG", "image/png")

    StoryboardGenerator(client).generate(_brief(reference=reference))

    parts = client.calls[0]["messages"][1]["content"]
    assert parts[1] == {"type": "image_url", "image_url": {"url": reference.data_uri}}


def test_non_submittable_brief_never_calls_the_service():
    client = _FakeAIClient(content=_payload(10))

    with pytest.raises(GenerationError) as info:
        StoryboardGenerator(client).generate(_brief(purpose="  "))

    assert info.value.kind is ErrorKind.INVALID
    assert client.calls == []


@pytest.mark.parametrize(
    "content",
    [
        "",
        "{not json",
        json.dumps({"title": "t", "synopsis": "s", "cuts": [{"cutNumber": 1}]}),
        json.dumps({"title": "t", "cuts": []}),
    ],
)
def test_malformed_payloads_are_invalid(content):
    client = _FakeAIClient(content=content)

    with pytest.raises(GenerationError) as info:
        StoryboardGenerator(client).generate(_brief())

    assert info.value.kind is ErrorKind.INVALID


def test_fenced_json_is_accepted():
    client = _FakeAIClient(content=f"```json\n{_payload(10)}\n```")

    storyboard = StoryboardGenerator(client).generate(_brief())

    assert len(storyboard.cuts) == 10


def test_remote_errors_are_classified():
    client = _FakeAIClient(error=RuntimeError("Requested entity was not found."))

    with pytest.raises(GenerationError) as info:
        StoryboardGenerator(client).generate(_brief())

    assert info.value.kind is ErrorKind.UNAUTHORIZED
    assert isinstance(info.value.__cause__, RuntimeError)


def test_missing_credential_surfaces_as_generation_error():
    generator = StoryboardGenerator(OpenAIClient(api_key=None))

    with pytest.raises(GenerationError) as info:
        generator.generate(_brief())

    assert info.value.kind is ErrorKind.MISSING_CREDENTIAL
