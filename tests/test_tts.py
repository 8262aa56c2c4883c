import httpx
import pytest
import respx

from templeline.tts import DEFAULT_VOICE_ID, ELEVENLABS_URL, AudioStore, ElevenLabsTTS

TTS_URL = ELEVENLABS_URL.format(voice_id=DEFAULT_VOICE_ID)


@pytest.fixture
def store(tmp_path):
    return AudioStore(tmp_path / "audio")


async def collect(gen):
    chunks = []
    async for chunk in gen:
        chunks.append(chunk)
    return b"".join(chunks)


class TestAudioStore:
    def test_put_writes_clip(self, store):
        clip = store.put("CA1", b"mp3-bytes")
        assert clip.clip_id in store
        assert clip.call_id == "CA1"
        assert (store.directory / f"{clip.clip_id}.mp3").read_bytes() == b"mp3-bytes"

    @pytest.mark.asyncio
    async def test_stream_releases_clip(self, store):
        clip = store.put("CA1", b"mp3-bytes")
        assert await collect(store.stream(clip.clip_id)) == b"mp3-bytes"
        assert clip.clip_id not in store
        assert not (store.directory / f"{clip.clip_id}.mp3").exists()

    @pytest.mark.asyncio
    async def test_stream_releases_clip_when_abandoned(self, store):
        clip = store.put("CA1", b"x" * 40000)
        gen = store.stream(clip.clip_id)
        await gen.__anext__()
        await gen.aclose()
        assert clip.clip_id not in store

    @pytest.mark.asyncio
    async def test_stream_unknown_clip(self, store):
        with pytest.raises(KeyError):
            await collect(store.stream("nope"))

    def test_release_call_drops_only_that_call(self, store):
        a = store.put("CA1", b"a")
        b = store.put("CA2", b"b")
        store.release_call("CA1")
        assert a.clip_id not in store
        assert b.clip_id in store


class TestElevenLabsTTS:
    @respx.mock
    @pytest.mark.asyncio
    async def test_synthesize_stores_clip(self, store):
        route = respx.post(TTS_URL).mock(return_value=httpx.Response(200, content=b"ID3audio"))
        tts = ElevenLabsTTS(api_key="el-key", store=store)

        clip = await tts.synthesize("CA1", "Hello")

        assert clip is not None
        assert clip.clip_id in store
        request = route.calls[0].request
        assert request.headers["xi-api-key"] == "el-key"
        assert b"eleven_turbo_v2_5" in request.content

    @respx.mock
    @pytest.mark.asyncio
    async def test_failure_falls_back_to_none(self, store):
        respx.post(TTS_URL).mock(return_value=httpx.Response(500))
        tts = ElevenLabsTTS(api_key="el-key", store=store)
        assert await tts.synthesize("CA1", "Hello") is None
        assert store.clips_for("CA1") == []

    @respx.mock
    @pytest.mark.asyncio
    async def test_empty_audio_falls_back_to_none(self, store):
        respx.post(TTS_URL).mock(return_value=httpx.Response(200, content=b""))
        tts = ElevenLabsTTS(api_key="el-key", store=store)
        assert await tts.synthesize("CA1", "Hello") is None

    @respx.mock
    @pytest.mark.asyncio
    async def test_open_circuit_skips_backend(self, store):
        route = respx.post(TTS_URL).mock(return_value=httpx.Response(502))
        tts = ElevenLabsTTS(api_key="el-key", store=store)
        for _ in range(4):
            assert await tts.synthesize("CA1", "Hello") is None
        assert route.call_count == 3

    @respx.mock
    @pytest.mark.asyncio
    async def test_unwritable_store_falls_back_to_none(self, store, tmp_path):
        respx.post(TTS_URL).mock(return_value=httpx.Response(200, content=b"ID3audio"))
        store.directory = tmp_path / "missing_dir"
        tts = ElevenLabsTTS(api_key="el-key", store=store)

        assert await tts.synthesize("CA1", "Hello") is None
        assert store.clips_for("CA1") == []
