"""Sidebar panel with buttons to run a sync and close the panel."""

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

SIDEBAR_HTML = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>Pet data sync</title>
  <style>
    body { font-family: sans-serif; margin: 12px; }
    #ps-grid { display: grid; gap: 8px; }
    .ps-disabled { opacity: 0.6; }
    .ps-loading { cursor: progress; }
    .ps-success { color: #137333; }
    .ps-error { color: #c5221f; }
  </style>
</head>
<body>
  <div id="ps-grid">
    <button id="ps-fetch-button" data-ps-action="fetch">Fetch data</button>
    <button id="ps-close-button" data-ps-action="close">Close</button>
    <div id="ps-status" role="status"></div>
  </div>
  <script>
  (function () {
    var fetchBtn, closeBtn, statusEl;

    function init() {
      if (!document.getElementById('ps-grid')) console.warn('Missing #ps-grid element');
      fetchBtn = document.getElementById('ps-fetch-button') ||
        document.querySelector('[data-ps-action="fetch"]');
      closeBtn = document.getElementById('ps-close-button') ||
        document.querySelector('[data-ps-action="close"]');
      statusEl = document.querySelector('#ps-status');
      if (fetchBtn) fetchBtn.addEventListener('click', onFetch, { passive: true });
      if (closeBtn) closeBtn.addEventListener('click', function () { window.close(); }, { passive: true });
    }

    function setBusy(busy) {
      fetchBtn.disabled = busy;
      fetchBtn.classList.toggle('ps-disabled', busy);
      fetchBtn.classList.toggle('ps-loading', busy);
      if (busy) fetchBtn.setAttribute('aria-busy', 'true');
      else fetchBtn.removeAttribute('aria-busy');
    }

    function show(state, message) {
      if (!statusEl) return;
      statusEl.textContent = message;
      statusEl.classList.remove('ps-success', 'ps-error');
      if (state) {
        statusEl.classList.add('ps-' + state);
        statusEl.setAttribute('data-ps-state', state);
      } else {
        statusEl.removeAttribute('data-ps-state');
      }
    }

    function onFetch() {
      setBusy(true);
      show(null, '');
      fetch('fetch', { method: 'POST' })
        .then(function (res) {
          return res.json().then(function (body) { return { ok: res.ok, body: body }; });
        })
        .then(function (out) {
          setBusy(false);
          if (out.ok) show('success', out.body.message || 'Data fetched successfully.');
          else show('error', out.body.detail || 'An error occurred.');
        })
        .catch(function (err) {
          setBusy(false);
          show('error', (err && err.message) || 'An error occurred.');
        });
    }

    document.addEventListener('DOMContentLoaded', init, { once: true });
  })();
  </script>
</body>
</html>
"""


def router() -> APIRouter:
    r = APIRouter()

    @r.get("/sidebar", response_class=HTMLResponse, include_in_schema=False)
    def sidebar():
        return HTMLResponse(SIDEBAR_HTML)

    return r
