"""
Unit tests for HostResolver.

Most tests replace the ProbeRunner with a fake returning preset timings so
ranking is deterministic; the end-to-end scenario runs the real ProbeRunner
against a mocked HTTP session.
"""

import threading
import time
from unittest.mock import MagicMock

import pytest
import requests

from line_resolver.core.exceptions import AssetError
from line_resolver.core.models import CloudSource, ProbeResult
from line_resolver.core.store import HostStore
from line_resolver.crypto.cloud_list import get_cloud_list_cipher
from line_resolver.resolution.hosts import HostResolver, fastest, run_all
from line_resolver.resolution.probe import ProbeRunner


def _api_value(urls=None, advert=None):
    data = {"urls": urls or []}
    if advert is not None:
        data["advert"] = advert
    return {"errcode": 0, "data": data}


class FakeProbeRunner:
    """Returns preset results. ``settle_delay`` controls completion order only."""

    def __init__(self, api=None, front=None, settle_delay=None):
        self.api = api or {}
        self.front = front or {}
        self.settle_delay = settle_delay or {}
        self.api_calls = []
        self.front_calls = []
        self.recorded_failures = []
        self._lock = threading.Lock()

    def record_api_failure(self, host, error=None):
        with self._lock:
            self.recorded_failures.append((host, error))

    def probe_api_host(self, host):
        with self._lock:
            self.api_calls.append(host)
        time.sleep(self.settle_delay.get(host, 0))
        ok, elapsed, value = self.api[host]
        return ProbeResult(host=host, ok=ok, elapsed_ms=elapsed, value=value if ok else None)

    def probe_front_host(self, url):
        with self._lock:
            self.front_calls.append(url)
        ok, elapsed = self.front[url]
        return ProbeResult(host=url, ok=ok, elapsed_ms=elapsed, value=url if ok else None)


@pytest.fixture
def assets():
    decryptor = MagicMock()
    decryptor.decrypt_image.return_value = "data:image/jpeg;base64,QUJD"
    return decryptor


def _resolver(store, probe_runner, assets, reporter, cloud_resolver=None):
    return HostResolver(
        store,
        reporter=reporter,
        probe_runner=probe_runner,
        asset_decryptor=assets,
        cloud_resolver=cloud_resolver or MagicMock(),
        http=MagicMock(),
    )


class TestRanking:
    """Tests for the fan-out helpers."""

    def test_fastest_picks_min_elapsed_success(self):
        results = [
            ProbeResult("a", True, 200),
            ProbeResult("b", False, 10),
            ProbeResult("c", True, 80),
        ]
        assert fastest(results).host == "c"

    def test_fastest_tie_keeps_input_order(self):
        results = [ProbeResult("a", True, 50), ProbeResult("b", True, 50)]
        assert fastest(results).host == "a"

    def test_fastest_none_when_all_failed(self):
        assert fastest([ProbeResult("a", False, 1)]) is None
        assert fastest([]) is None

    def test_run_all_waits_for_every_probe(self):
        finished = []

        def probe(target):
            time.sleep(target)
            finished.append(target)
            return ProbeResult(str(target), True, target * 1000)

        results = run_all(probe, [0.15, 0.0, 0.05], "Test")

        assert sorted(finished) == [0.0, 0.05, 0.15]
        assert [r.host for r in results] == ["0.15", "0.0", "0.05"]

    def test_run_all_deadline_fails_unsettled_probes(self):
        expired = []

        def probe(target):
            time.sleep(1.0 if target == "slow" else 0)
            return ProbeResult(target, True, 1)

        start = time.monotonic()
        results = run_all(
            probe, ["slow", "fast"], "Test", deadline=0.2,
            on_expired=lambda target, error: expired.append((target, error.reason)),
        )

        assert time.monotonic() - start < 0.8
        assert results[0].ok is False
        assert results[0].error.reason == "deadline"
        assert results[1].ok is True
        assert expired == [("slow", "deadline")]

    def test_run_all_dispatches_concurrently(self):
        def probe(target):
            time.sleep(0.2)
            return ProbeResult(target, True, 200)

        start = time.monotonic()
        run_all(probe, ["a", "b", "c", "d"], "Test")
        assert time.monotonic() - start < 0.6


class TestResolveApiHost:
    """Tests for HostResolver.resolve_api_host()."""

    @pytest.mark.parametrize("settle_delay", [
        {},
        {"https://h1.example": 0.1},
        {"https://h3.example": 0.1},
        {"https://h1.example": 0.05, "https://h2.example": 0.1},
    ])
    def test_fastest_success_wins_regardless_of_settle_order(self, store, assets, reporter, settle_delay):
        store.set_api_hosts(["https://h1.example", "https://h2.example", "https://h3.example"])
        runner = FakeProbeRunner(
            api={
                "https://h1.example": (True, 200, _api_value()),
                "https://h2.example": (False, 50, None),
                "https://h3.example": (True, 80, _api_value()),
            },
            settle_delay=settle_delay,
        )
        resolver = _resolver(store, runner, assets, reporter)

        assert resolver.resolve_api_host() == "https://h3.example"
        assert store.api_endpoint == "https://h3.example"
        assert sorted(runner.api_calls) == ["https://h1.example", "https://h2.example", "https://h3.example"]

    def test_no_valid_candidates_makes_no_calls(self, store, assets, reporter):
        store.set_api_hosts(["not-a-url", "ftp://x.example", ""])
        store.set_api_endpoint("https://stale.example")
        runner = FakeProbeRunner()
        resolver = _resolver(store, runner, assets, reporter)

        assert resolver.resolve_api_host() is None
        assert runner.api_calls == []
        assert store.api_endpoint == ""

    def test_all_failed_clears_endpoint(self, store, assets, reporter):
        store.set_api_hosts(["https://h1.example"])
        store.set_api_endpoint("https://stale.example")
        runner = FakeProbeRunner(api={"https://h1.example": (False, 10, None)})
        resolver = _resolver(store, runner, assets, reporter)

        assert resolver.resolve_api_host() is None
        assert store.api_endpoint == ""
        assert runner.front_calls == []

    def test_candidates_normalized_and_deduplicated(self, store, assets, reporter):
        store.set_api_hosts(["https://h1.example//", "https://h1.example", "https://h2.example/"])
        runner = FakeProbeRunner(api={
            "https://h1.example": (True, 10, _api_value()),
            "https://h2.example": (True, 20, _api_value()),
        })
        resolver = _resolver(store, runner, assets, reporter)

        assert resolver.resolve_api_host() == "https://h1.example"
        assert sorted(runner.api_calls) == ["https://h1.example", "https://h2.example"]

    def test_failed_host_excluded_regardless_of_trailing_slash(self, store, assets, reporter):
        store.set_api_hosts(["https://h1.example/"])
        resolver = _resolver(store, FakeProbeRunner(), assets, reporter)
        resolver.session.mark_failed_host("https://h1.example")

        assert resolver.resolve_api_host() is None
        assert resolver.probe_runner.api_calls == []

    def test_failed_host_is_not_probed_again_in_session(self, store, assets, reporter):
        store.set_api_hosts(["https://h1.example"])
        resolver = _resolver(store, FakeProbeRunner(), assets, reporter)
        resolver.session.mark_failed_host("https://h1.example")

        assert resolver.resolve_api_host() is None
        assert resolver.probe_runner.api_calls == []

    def test_fastest_frontend_selected(self, store, assets, reporter):
        store.set_api_hosts(["https://h1.example"])
        runner = FakeProbeRunner(
            api={"https://h1.example": (True, 10, _api_value(urls=[
                "https://f1.example/", "junk", "https://f2.example", "https://f3.example",
            ]))},
            front={
                "https://f1.example": (True, 300),
                "https://f2.example": (True, 40),
                "https://f3.example": (False, 5),
            },
        )
        resolver = _resolver(store, runner, assets, reporter)

        resolver.resolve_api_host()

        assert sorted(runner.front_calls) == ["https://f1.example", "https://f2.example", "https://f3.example"]
        assert store.url_endpoint == "https://f2.example"

    def test_no_working_frontend_clears_endpoint(self, store, assets, reporter):
        store.set_api_hosts(["https://h1.example"])
        store.set_url_endpoint("https://stale-front.example")
        runner = FakeProbeRunner(
            api={"https://h1.example": (True, 10, _api_value(urls=["https://f1.example"]))},
            front={"https://f1.example": (False, 10)},
        )
        resolver = _resolver(store, runner, assets, reporter)

        assert resolver.resolve_api_host() == "https://h1.example"
        assert store.url_endpoint == ""

    def test_urls_not_a_list(self, store, assets, reporter):
        store.set_api_hosts(["https://h1.example"])
        value = {"errcode": 0, "data": {"urls": "https://f1.example"}}
        runner = FakeProbeRunner(api={"https://h1.example": (True, 10, value)})
        resolver = _resolver(store, runner, assets, reporter)

        assert resolver.resolve_api_host() == "https://h1.example"
        assert runner.front_calls == []
        assert store.url_endpoint == ""


class TestAdvert:
    """Tests for advert handling during resolution."""

    ADVERT = {"image": "/ads/1.bin", "url": "https://promo.example", "name": "Promo", "position": 2}

    def _runner(self, advert):
        return FakeProbeRunner(api={"https://h1.example": (True, 10, _api_value(advert=advert))})

    def test_new_advert_decrypted_and_stored(self, store, assets, reporter):
        store.set_api_hosts(["https://h1.example"])
        resolver = _resolver(store, self._runner(self.ADVERT), assets, reporter)

        resolver.resolve_api_host()

        assets.decrypt_image.assert_called_once_with("/ads/1.bin")
        ads = store.ads
        assert ads.image == "/ads/1.bin"
        assert ads.url == "https://promo.example"
        assert ads.name == "Promo"
        assert ads.position == 2
        assert ads.base64 == "data:image/jpeg;base64,QUJD"

    def test_unchanged_advert_decrypted_once_across_resolutions(self, store, assets, reporter):
        store.set_api_hosts(["https://h1.example"])
        resolver = _resolver(store, self._runner(self.ADVERT), assets, reporter)

        resolver.resolve_api_host()
        resolver.resolve_api_host()

        assert assets.decrypt_image.call_count == 1

    def test_changed_advert_decrypted_again(self, store, assets, reporter):
        store.set_api_hosts(["https://h1.example"])
        store.set_ads(image="/ads/old.bin", base64="data:image/jpeg;base64,T0xE")
        resolver = _resolver(store, self._runner(self.ADVERT), assets, reporter)

        resolver.resolve_api_host()

        assets.decrypt_image.assert_called_once_with("/ads/1.bin")

    def test_missing_advert_is_noop(self, store, assets, reporter):
        store.set_api_hosts(["https://h1.example"])
        resolver = _resolver(store, self._runner(None), assets, reporter)

        assert resolver.resolve_api_host() == "https://h1.example"
        assets.decrypt_image.assert_not_called()

    def test_decrypt_failure_does_not_fail_resolution(self, store, assets, reporter):
        store.set_api_hosts(["https://h1.example"])
        assets.decrypt_image.side_effect = AssetError("Image fetch failed: 404")
        resolver = _resolver(store, self._runner(self.ADVERT), assets, reporter)

        assert resolver.resolve_api_host() == "https://h1.example"
        assert store.ads.image == ""

    def test_empty_decrypt_result_not_stored(self, store, assets, reporter):
        store.set_api_hosts(["https://h1.example"])
        assets.decrypt_image.return_value = ""
        resolver = _resolver(store, self._runner(self.ADVERT), assets, reporter)

        resolver.resolve_api_host()

        assert store.ads.image == ""


class TestInitApiHosts:
    """Tests for HostResolver.init_api_hosts()."""

    def test_direct_success_skips_cloud(self, store, assets, reporter):
        store.set_api_hosts(["https://h1.example"])
        cloud = MagicMock()
        resolver = _resolver(
            store, FakeProbeRunner(api={"https://h1.example": (True, 10, _api_value())}), assets, reporter, cloud
        )

        assert resolver.init_api_hosts() == "https://h1.example"
        cloud.resolve_cloud_host.assert_not_called()
        assert resolver.loading is False

    def test_falls_back_to_cloud(self, store, assets, reporter):
        store.set_api_hosts(["https://h1.example"])
        cloud = MagicMock()
        cloud.resolve_cloud_host.return_value = "https://backup.example"
        resolver = _resolver(
            store, FakeProbeRunner(api={"https://h1.example": (False, 10, None)}), assets, reporter, cloud
        )

        assert resolver.init_api_hosts() == "https://backup.example"
        cloud.resolve_cloud_host.assert_called_once()

    def test_empty_hosts_and_clouds_returns_none(self):
        store = HostStore(api_hosts=[], clouds=[])
        resolver = HostResolver(store, reporter=MagicMock(), asset_decryptor=MagicMock(), http=MagicMock())

        assert resolver.init_api_hosts() is None
        snapshot = resolver.snapshot()
        assert snapshot.failed_hosts == ()
        assert snapshot.failed_clouds == ()
        assert snapshot.loading is False

    def test_concurrent_call_is_noop(self, store, assets, reporter):
        store.set_api_hosts(["https://h1.example"])
        runner = FakeProbeRunner(
            api={"https://h1.example": (True, 10, _api_value())},
            settle_delay={"https://h1.example": 0.3},
        )
        resolver = _resolver(store, runner, assets, reporter)

        results = {}
        first = threading.Thread(target=lambda: results.setdefault("first", resolver.init_api_hosts()))
        first.start()
        deadline = time.monotonic() + 2
        while not resolver.loading and time.monotonic() < deadline:
            time.sleep(0.01)

        assert resolver.init_api_hosts() is None
        first.join()

        assert results["first"] == "https://h1.example"
        assert runner.api_calls == ["https://h1.example"]

    def test_loading_cleared_after_error(self, store, assets, reporter):
        cloud = MagicMock()
        cloud.resolve_cloud_host.side_effect = RuntimeError("boom")
        resolver = _resolver(store, FakeProbeRunner(), assets, reporter, cloud)

        with pytest.raises(RuntimeError):
            resolver.init_api_hosts()
        assert resolver.loading is False

    def test_failed_lists_reset_per_attempt(self, store, assets, reporter):
        resolver = _resolver(store, FakeProbeRunner(), assets, reporter)
        resolver.session.mark_failed_host("https://old.example")

        resolver.init_api_hosts()

        assert resolver.snapshot().failed_hosts == ()


class TestConcreteScenario:
    """Full stack with the real ProbeRunner over a mocked HTTP session."""

    def test_fastest_valid_host_wins(self, store, reporter, assets, make_response, envelope):
        hosts = ["https://h1.example", "https://h2.example", "https://h3.example"]
        store.set_api_hosts(hosts)
        delays = {"https://h1.example": 0.35, "https://h2.example": 0.05, "https://h3.example": 0.12}
        errcodes = {"https://h1.example": 0, "https://h2.example": 1, "https://h3.example": 0}

        def post(url, **kwargs):
            host = url.split("/apiv1")[0]
            time.sleep(delays[host])
            body = {"data": envelope.encrypt({"errcode": errcodes[host], "data": {"urls": []}})}
            return make_response(json_data=body)

        http = MagicMock()
        http.post.side_effect = post
        resolver = HostResolver(store, reporter=reporter, asset_decryptor=assets, http=http)
        resolver.probe_runner = ProbeRunner(store, resolver.session, reporter, http=http)

        assert resolver.resolve_api_host() == "https://h3.example"
        assert store.api_endpoint == "https://h3.example"
        assert resolver.snapshot().failed_hosts == ("https://h2.example",)
        reporter.report_failed_domain_once.assert_called_once_with("https://h2.example")
        assert store.get_api_hosts() == ["https://h1.example", "https://h3.example"]

    def test_network_errors_do_not_interrupt_siblings(self, store, reporter, assets, make_response, api_ok_body):
        store.set_api_hosts(["https://down.example", "https://up.example"])

        def post(url, **kwargs):
            if url.startswith("https://down.example"):
                raise requests.exceptions.ConnectionError("refused")
            return make_response(json_data=api_ok_body())

        http = MagicMock()
        http.post.side_effect = post
        resolver = HostResolver(store, reporter=reporter, asset_decryptor=assets, http=http)
        resolver.probe_runner = ProbeRunner(store, resolver.session, reporter, http=http)

        assert resolver.resolve_api_host() == "https://up.example"
        assert "https://down.example" not in store.get_api_hosts()

    def test_cloud_fallback_stops_at_first_working_source(self, reporter, assets, make_response, api_ok_body):
        cipher = get_cloud_list_cipher()
        cloud_a = CloudSource("a", "https://a.cloud.example/list.json")
        cloud_b = CloudSource("b", "https://b.cloud.example/list.json")
        cloud_c = CloudSource("c", "https://c.cloud.example/list.json")
        store = HostStore(api_hosts=[], clouds=[cloud_a, cloud_b, cloud_c])
        documents = {
            cloud_a.value: [cipher.encrypt("https://a1.example"), cipher.encrypt("https://a2.example")],
            cloud_b.value: [cipher.encrypt("https://b1.example")],
            cloud_c.value: [cipher.encrypt("https://c1.example")],
        }

        def get(url, **kwargs):
            return make_response(json_data=documents[url])

        def post(url, **kwargs):
            if url.startswith("https://b1.example"):
                return make_response(json_data=api_ok_body())
            return make_response(status_code=503)

        http = MagicMock()
        http.get.side_effect = get
        http.post.side_effect = post
        resolver = HostResolver(store, reporter=reporter, asset_decryptor=assets, http=http)

        assert resolver.init_api_hosts() == "https://b1.example"

        fetched = [call.args[0] for call in http.get.call_args_list]
        assert fetched == [cloud_a.value, cloud_b.value]
        probed = sorted(call.args[0].split("/apiv1")[0] for call in http.post.call_args_list)
        assert probed == ["https://a1.example", "https://a2.example", "https://b1.example"]
        snapshot = resolver.snapshot()
        assert snapshot.failed_clouds == (cloud_a.value,)
        assert set(snapshot.failed_hosts) == {"https://a1.example", "https://a2.example"}

    def test_host_failed_with_slash_not_probed_again_from_cloud(self, reporter, assets, make_response):
        cloud = CloudSource("worker", "https://cloud.example/list.json")
        store = HostStore(api_hosts=["https://a.example/"], clouds=[cloud])
        cipher = get_cloud_list_cipher()

        http = MagicMock()
        http.get.return_value = make_response(json_data=[cipher.encrypt("https://a.example")])
        http.post.return_value = make_response(status_code=503)
        resolver = HostResolver(store, reporter=reporter, asset_decryptor=assets, http=http)

        assert resolver.init_api_hosts() is None

        posted = [call.args[0] for call in http.post.call_args_list]
        assert posted == ["https://a.example/apiv1/latest-redbook-conf"]
        snapshot = resolver.snapshot()
        assert snapshot.failed_hosts == ("https://a.example",)
        assert snapshot.failed_clouds == (cloud.value,)

    def test_hung_host_fails_at_deadline(self, store, reporter, assets, make_response, api_ok_body):
        store.set_api_hosts(["https://hung.example", "https://up.example"])
        release = threading.Event()

        def post(url, **kwargs):
            if url.startswith("https://hung.example"):
                release.wait(5)
                raise requests.exceptions.ReadTimeout("slow body")
            return make_response(json_data=api_ok_body())

        http = MagicMock()
        http.post.side_effect = post
        resolver = HostResolver(store, reporter=reporter, asset_decryptor=assets, http=http, deadline=0.3)
        resolver.probe_runner = ProbeRunner(store, resolver.session, reporter, http=http)

        start = time.monotonic()
        try:
            assert resolver.resolve_api_host() == "https://up.example"
            assert time.monotonic() - start < 2
            assert resolver.snapshot().failed_hosts == ("https://hung.example",)
            reporter.report_failed_domain_once.assert_called_with("https://hung.example")
            assert store.get_api_hosts() == ["https://up.example"]
        finally:
            release.set()
