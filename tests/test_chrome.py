"""
Tests for the CDP-backed Chrome host with the DevTools connection mocked.
"""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from tabwise.chrome import ChromeHost
from tabwise.chrome_utils import scan_chrome_processes


class FakeCDP:
    """Answers the handful of CDP commands ChromeHost sends."""

    def __init__(self, layout):
        # layout: {window_id: [(target_id, url), ...]}
        self.targets = {}
        for window_id, pages in layout.items():
            for target_id, url in pages:
                self.targets[target_id] = {"url": url, "window": window_id}
        self.groups = []
        self.sent = []
        self._next = 1
        self._next_window = 900

    async def send(self, method, params=None):
        self.sent.append((method, params))
        if method == "Target.getTargets":
            infos = [
                {"targetId": tid, "type": "page", "url": t["url"], "title": f"T:{tid}"}
                for tid, t in self.targets.items()
            ]
            infos.append({"targetId": "sw", "type": "service_worker", "url": "x"})
            infos.append({"targetId": "dt", "type": "page", "url": "devtools://devtools"})
            return {"targetInfos": infos}
        if method == "Browser.getWindowForTarget":
            if params["targetId"] == "dt":
                return {"windowId": 1}
            return {"windowId": self.targets[params["targetId"]]["window"]}
        if method == "Target.createTarget":
            new_id = f"new-{self._next}"
            self._next += 1
            if params.get("newWindow"):
                window = self._next_window
                self._next_window += 1
            else:
                window = self.targets[params["openerId"]]["window"]
            self.targets[new_id] = {"url": params["url"], "window": window}
            return {"targetId": new_id}
        if method == "Target.closeTarget":
            del self.targets[params["targetId"]]
            return {"success": True}
        if method == "TabGroups.create":
            return {"groupId": 42}
        if method == "TabGroups.query":
            return {"groups": self.groups}
        return {}

    def methods(self, name):
        return [params for method, params in self.sent if method == name]


def _host(cdp, groups_supported=True):
    host = ChromeHost()
    host._browser = Mock()
    host._tab_groups_supported = groups_supported
    host._get_cdp_connection = AsyncMock(return_value=cdp)
    return host


LAYOUT = {
    10: [("a", "https://a.example.com/"), ("b", "https://b.example.com/")],
    20: [("c", "https://c.example.com/")],
}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_tabs_and_windows():
    cdp = FakeCDP(LAYOUT)
    cdp.groups = [{"groupId": 7, "tabIds": ["b"]}]
    host = _host(cdp)

    tabs = await host.list_all_tabs()
    windows = await host.list_windows()

    assert [(t.id, t.window_id, t.group_id) for t in tabs] == [
        ("a", 10, None),
        ("b", 10, 7),
        ("c", 20, None),
    ]
    assert tabs[0].title == "T:a"
    assert sorted((w.id, w.tab_count) for w in windows) == [(10, 2), (20, 1)]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_move_reopens_next_to_anchor_and_keeps_id():
    cdp = FakeCDP(LAYOUT)
    host = _host(cdp)

    await host.move_tabs(["a", "c"], 20)

    (created,) = cdp.methods("Target.createTarget")
    assert created["url"] == "https://a.example.com/"
    assert created["openerId"] == "c"
    assert created["newWindow"] is False
    assert {"targetId": "a"} in cdp.methods("Target.closeTarget")

    tabs = await host.list_all_tabs()
    assert sorted((t.id, t.window_id) for t in tabs) == [("a", 20), ("b", 10), ("c", 20)]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_move_to_window_without_tabs_fails():
    host = _host(FakeCDP(LAYOUT))

    with pytest.raises(RuntimeError, match="no tab to anchor"):
        await host.move_tabs(["a"], 99)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_move_of_vanished_tab_fails():
    host = _host(FakeCDP(LAYOUT))

    with pytest.raises(RuntimeError, match="no longer exists"):
        await host.move_tabs(["zzz"], 20)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_window_and_group_follow_alias():
    cdp = FakeCDP(LAYOUT)
    host = _host(cdp)

    window_id = await host.create_window("b")
    assert window_id == 900

    group_id = await host.create_group("Research", ["b"], 1)
    assert group_id == 42

    (create,) = cdp.methods("TabGroups.create")
    assert create == {"windowId": 900, "title": "Research", "color": "red"}
    (add,) = cdp.methods("TabGroups.addTab")
    assert add == {"groupId": 42, "tabId": "new-1"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_remove_window_closes_its_tabs():
    cdp = FakeCDP(LAYOUT)
    host = _host(cdp)

    await host.remove_window(10)

    assert sorted(cdp.targets) == ["c"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_ungroup_requires_tab_groups():
    cdp = FakeCDP(LAYOUT)

    with pytest.raises(RuntimeError, match="Tab Groups API"):
        await _host(cdp, groups_supported=False).ungroup(["a"])

    await _host(cdp).ungroup(["a", "b"])
    assert cdp.methods("TabGroups.removeTab") == [{"tabId": "a"}, {"tabId": "b"}]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_probe_tab_groups():
    """Tab-group support detection."""
    host = ChromeHost()
    host._browser = Mock()
    mock_cdp = AsyncMock()

    with patch.object(ChromeHost, "_get_cdp_connection", AsyncMock(return_value=mock_cdp)):
        await host._probe_tab_groups()
        assert host._tab_groups_supported is True

    host._tab_groups_supported = None
    mock_cdp.send.side_effect = Exception("methodNotFound")
    with patch.object(ChromeHost, "_get_cdp_connection", AsyncMock(return_value=mock_cdp)):
        await host._probe_tab_groups()
        assert host._tab_groups_supported is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_connection_error_message():
    host = ChromeHost(port=9999)

    with patch.object(ChromeHost, "_get_websocket_endpoint", AsyncMock(return_value=None)):
        with pytest.raises(RuntimeError, match="--remote-debugging-port=9999"):
            await host._ensure_connection()


@pytest.mark.unit
def test_scan_chrome_processes_reads_debug_port():
    ps_output = (
        "  PID COMMAND\n"
        "  101 /Applications/Google Chrome.app/Contents/MacOS/Google Chrome "
        "--remote-debugging-port=9333 --user-data-dir=/tmp/x\n"
        "  102 /Applications/Google Chrome.app/Contents/Frameworks/Google Chrome Helper\n"
        "  200 /usr/bin/vim notes.txt\n"
    )
    completed = Mock(stdout=ps_output)

    with patch("tabwise.chrome_utils.subprocess.run", return_value=completed):
        status = scan_chrome_processes(["Google Chrome"])

    assert status.running is True
    assert status.remote_debug is True
    assert status.debug_port == 9333
    assert status.pids == (101, 102)


@pytest.mark.unit
def test_scan_chrome_processes_without_ps():
    with patch("tabwise.chrome_utils.subprocess.run", side_effect=OSError("no ps")):
        status = scan_chrome_processes(["Google Chrome"])

    assert status == (False, False, (), None)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_close_and_focus_tabs():
    cdp = FakeCDP(LAYOUT)
    host = _host(cdp)

    await host.close_tabs(["a"])
    await host.focus_tab("c")

    assert sorted(cdp.targets) == ["b", "c"]
    assert cdp.methods("Target.activateTarget") == [{"targetId": "c"}]
    with pytest.raises(RuntimeError, match="no longer exists"):
        await host.close_tabs(["a"])


@pytest.mark.unit
@pytest.mark.asyncio
async def test_active_tab_content_reads_visible_page():
    def page(url, visibility, text=""):
        mock = Mock(url=url)
        mock.evaluate = AsyncMock(side_effect=[visibility, text])
        return mock

    settings_page = page("chrome://settings", "visible")
    hidden = page("https://hidden.example.com/", "hidden")
    shown = page("https://docs.example.com/", "visible", "x" * 6000)
    host = ChromeHost()
    host._browser = Mock(contexts=[Mock(pages=[settings_page, hidden, shown])])

    content = await host.active_tab_content()

    assert content == "x" * 5000
    settings_page.evaluate.assert_not_awaited()
    assert hidden.evaluate.await_count == 1
