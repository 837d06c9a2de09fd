"""
LiveCanvas Kernel — Realm Document

Builds what the sandboxed iframe renders: the canonical document with
resolved content placeholders substituted, global components injected,
and (in design mode) the instrumentation script and styles appended.

Everything added here is prefixed with lc- so it can be told apart from
page content and stripped again (dom.strip_instrumentation).

The script's getAddress() and resolve() are the same walks as
selector.address_of() and selector.resolve_in(): an id stops the walk,
same-tag siblings get :nth-of-type(k), segments are joined with " > ",
and the body itself is "body". lc- elements never count as siblings.
"""

from __future__ import annotations

from engine.kernel.components import inject_globals
from engine.kernel.entries import substitute
from engine.kernel.selector import TAG_SEGMENT_PATTERN
from engine.kernel.types import ADDRESS_SEPARATOR, ROOT_ADDRESS, GlobalComponent

REALM_STYLE = """<style id="lc-realm-style">
lc-global, lc-entries { display: contents; }
.lc-hover { outline: 1px dashed #3b82f6 !important; outline-offset: 2px; cursor: pointer; }
.lc-selected { outline: 2px solid #3b82f6 !important; outline-offset: 2px; }
.lc-editing { outline: 2px solid #f59e0b !important; outline-offset: 2px; cursor: text; }
.lc-dragging { opacity: 0.4; }
.lc-drop-before { box-shadow: inset 0 3px 0 #3b82f6; }
.lc-drop-after { box-shadow: inset 0 -3px 0 #3b82f6; }
lc-badge {
  position: absolute; z-index: 2147483646; display: none; align-items: center; gap: 4px;
  padding: 2px 6px; font: 11px/16px system-ui, sans-serif; color: #fff; background: #3b82f6;
  border-radius: 3px; pointer-events: none;
}
lc-handle {
  position: absolute; z-index: 2147483647; display: none; width: 20px; height: 20px;
  background: #3b82f6; border-radius: 3px; cursor: grab;
}
</style>"""

_SCRIPT_TEMPLATE = r"""<script id="lc-realm-script">
(function () {
  var PREFIX = 'lc-';
  var ROOT = '__ROOT__';
  var SEPARATOR = '__SEPARATOR__';
  var SEGMENT = /__SEGMENT__/;
  var TEXT_TAGS = ['P', 'H1', 'H2', 'H3', 'H4', 'H5', 'H6', 'SPAN', 'A', 'BUTTON', 'LI', 'LABEL', 'TD', 'TH', 'BLOCKQUOTE', 'FIGCAPTION'];
  var hovered = null;
  var selected = null;
  var editing = null;
  var originalHtml = null;
  var dragged = null;

  var badge = document.createElement('lc-badge');
  var handle = document.createElement('lc-handle');
  handle.setAttribute('draggable', 'true');
  document.body.appendChild(badge);
  document.body.appendChild(handle);

  function send(message) {
    window.parent.postMessage(message, '*');
  }

  function isRealm(el) {
    return !el || !el.tagName || el.tagName.toLowerCase().indexOf(PREFIX) === 0;
  }

  function isContent(el) {
    if (!el || el === document.body || el === document.documentElement) return false;
    if (isRealm(el)) return false;
    return !el.closest('lc-global, lc-entries, lc-badge, lc-handle');
  }

  function getAddress(el) {
    if (el === document.body) return ROOT;
    var path = [];
    while (el && el !== document.body && el !== document.documentElement) {
      if (el.id) {
        path.unshift('#' + el.id);
        break;
      }
      var segment = el.tagName.toLowerCase();
      if (el.parentElement) {
        var same = Array.prototype.filter.call(el.parentElement.children, function (c) {
          return c.tagName === el.tagName;
        });
        if (same.length > 1) {
          segment += ':nth-of-type(' + (same.indexOf(el) + 1) + ')';
        }
      }
      path.unshift(segment);
      el = el.parentElement;
    }
    return path.join(SEPARATOR);
  }

  function cleanClasses(el) {
    return Array.prototype.filter.call(el.classList, function (c) {
      return c.indexOf(PREFIX) !== 0;
    }).join(' ');
  }

  function tagPath(el) {
    var path = [];
    while (el && el !== document.body) {
      path.unshift(el.tagName.toLowerCase());
      el = el.parentElement;
    }
    return path;
  }

  function snapshot(el) {
    var rect = el.getBoundingClientRect();
    var style = window.getComputedStyle(el);
    return {
      tagName: el.tagName,
      selector: getAddress(el),
      className: cleanClasses(el),
      textContent: (el.textContent || '').slice(0, 200),
      innerHTML: el.innerHTML,
      outerHTML: el.outerHTML,
      rect: { top: rect.top, left: rect.left, width: rect.width, height: rect.height },
      path: tagPath(el),
      spacing: {
        marginTop: parseFloat(style.marginTop) || 0,
        marginRight: parseFloat(style.marginRight) || 0,
        marginBottom: parseFloat(style.marginBottom) || 0,
        marginLeft: parseFloat(style.marginLeft) || 0,
        paddingTop: parseFloat(style.paddingTop) || 0,
        paddingRight: parseFloat(style.paddingRight) || 0,
        paddingBottom: parseFloat(style.paddingBottom) || 0,
        paddingLeft: parseFloat(style.paddingLeft) || 0
      }
    };
  }

  function serializeDocument() {
    var clone = document.documentElement.cloneNode(true);
    Array.prototype.forEach.call(clone.querySelectorAll('lc-badge, lc-handle, [id^="lc-"]'), function (n) {
      n.remove();
    });
    Array.prototype.forEach.call(clone.querySelectorAll('[class]'), function (n) {
      var kept = cleanClasses(n);
      if (kept) n.setAttribute('class', kept); else n.removeAttribute('class');
    });
    Array.prototype.forEach.call(clone.querySelectorAll('[contenteditable], [draggable]'), function (n) {
      n.removeAttribute('contenteditable');
      n.removeAttribute('draggable');
    });
    return clone.outerHTML;
  }

  function showBadge(el) {
    var rect = el.getBoundingClientRect();
    badge.textContent = el.tagName;
    badge.style.display = 'flex';
    badge.style.left = (rect.left + window.scrollX) + 'px';
    badge.style.top = Math.max(0, rect.top + window.scrollY - 20) + 'px';
  }

  function showHandle(el) {
    if (el.parentElement !== document.body) {
      handle.style.display = 'none';
      return;
    }
    var rect = el.getBoundingClientRect();
    handle.style.display = 'block';
    handle.style.left = (rect.right + window.scrollX - 24) + 'px';
    handle.style.top = (rect.top + window.scrollY + 4) + 'px';
    handle.lcTarget = el;
  }

  function select(el) {
    if (selected) selected.classList.remove('lc-selected');
    selected = el;
    if (!el) {
      badge.style.display = 'none';
      handle.style.display = 'none';
      return;
    }
    el.classList.add('lc-selected');
    showBadge(el);
    showHandle(el);
  }

  function stopEditing(commit) {
    if (!editing) return;
    var el = editing;
    editing = null;
    el.removeAttribute('contenteditable');
    el.classList.remove('lc-editing');
    if (!commit) {
      el.innerHTML = originalHtml;
    } else if (el.innerHTML !== originalHtml) {
      send({ type: 'text-edited', selector: getAddress(el), newHtml: el.innerHTML });
    }
    originalHtml = null;
  }

  document.addEventListener('mouseover', function (e) {
    var el = e.target;
    if (!isContent(el) || el === hovered) return;
    if (hovered) hovered.classList.remove('lc-hover');
    hovered = el;
    el.classList.add('lc-hover');
    send({ type: 'element-hovered', selector: getAddress(el) });
  });

  document.addEventListener('mouseleave', function () {
    if (hovered) hovered.classList.remove('lc-hover');
    hovered = null;
    send({ type: 'element-hovered', selector: null });
  });

  document.addEventListener('click', function (e) {
    var el = e.target;
    if (editing && editing.contains(el)) return;
    e.preventDefault();
    e.stopPropagation();
    stopEditing(true);
    if (!isContent(el)) return;
    select(el);
    send({ type: 'element-selected', element: snapshot(el) });
  }, true);

  document.addEventListener('dblclick', function (e) {
    var el = e.target;
    if (!isContent(el) || TEXT_TAGS.indexOf(el.tagName) === -1) return;
    e.preventDefault();
    stopEditing(true);
    editing = el;
    originalHtml = el.innerHTML;
    el.setAttribute('contenteditable', 'true');
    el.classList.add('lc-editing');
    el.focus();
  });

  document.addEventListener('focusout', function (e) {
    if (editing && e.target === editing) stopEditing(true);
  });

  document.addEventListener('contextmenu', function (e) {
    var el = e.target;
    if (!isContent(el)) return;
    e.preventDefault();
    select(el);
    send({ type: 'context-menu', x: e.clientX, y: e.clientY, element: snapshot(el) });
  });

  document.addEventListener('keydown', function (e) {
    if (editing) {
      if (e.key === 'Enter' && !e.shiftKey) {
        e.preventDefault();
        stopEditing(true);
      } else if (e.key === 'Escape') {
        e.preventDefault();
        stopEditing(false);
      }
      return;
    }
    if ((e.key === 'Delete' || e.key === 'Backspace') && selected) {
      e.preventDefault();
      send({ type: 'delete-element', selector: getAddress(selected) });
    }
  });

  handle.addEventListener('dragstart', function (e) {
    dragged = handle.lcTarget || null;
    if (!dragged) return;
    dragged.classList.add('lc-dragging');
    e.dataTransfer.effectAllowed = 'move';
    e.dataTransfer.setData('text/plain', 'lc-section');
  });

  function clearDropMarks() {
    Array.prototype.forEach.call(document.querySelectorAll('.lc-drop-before, .lc-drop-after'), function (n) {
      n.classList.remove('lc-drop-before', 'lc-drop-after');
    });
  }

  function dropTarget(el) {
    while (el && el.parentElement !== document.body) el = el.parentElement;
    return isContent(el) ? el : null;
  }

  document.addEventListener('dragover', function (e) {
    if (!dragged) return;
    var target = dropTarget(e.target);
    if (!target || target === dragged) return;
    e.preventDefault();
    clearDropMarks();
    var rect = target.getBoundingClientRect();
    target.classList.add(e.clientY < rect.top + rect.height / 2 ? 'lc-drop-before' : 'lc-drop-after');
  });

  document.addEventListener('drop', function (e) {
    if (!dragged) return;
    e.preventDefault();
    var target = dropTarget(e.target);
    if (target && target !== dragged) {
      if (target.classList.contains('lc-drop-before')) {
        target.parentElement.insertBefore(dragged, target);
      } else {
        target.parentElement.insertBefore(dragged, target.nextSibling);
      }
      clearDropMarks();
      dragged.classList.remove('lc-dragging');
      dragged = null;
      send({ type: 'section-reordered', html: serializeDocument() });
      return;
    }
    clearDropMarks();
  });

  document.addEventListener('dragend', function () {
    if (dragged) dragged.classList.remove('lc-dragging');
    dragged = null;
    clearDropMarks();
  });

  function contentChildren(el) {
    return Array.prototype.filter.call(el.children, function (c) {
      return !isRealm(c);
    });
  }

  function resolve(address) {
    if (!address) return null;
    if (address === ROOT) return document.body;
    var segments = address.split(SEPARATOR.trim()).map(function (s) {
      return s.trim();
    }).filter(Boolean);
    var el = document.body;
    for (var i = 0; i < segments.length && el; i++) {
      var segment = segments[i];
      if (segment.charAt(0) === '#') {
        el = segment.length > 1 ? document.getElementById(segment.slice(1)) : null;
        continue;
      }
      var match = SEGMENT.exec(segment);
      if (!match) return null;
      var tag = match[1].toUpperCase();
      var same = contentChildren(el).filter(function (c) {
        return c.tagName === tag;
      });
      var k = match[2] ? parseInt(match[2], 10) : 1;
      el = k >= 1 && k <= same.length ? same[k - 1] : null;
    }
    return el;
  }

  window.addEventListener('message', function (e) {
    var message = e.data || {};
    if (message.type === 'deselect') {
      stopEditing(true);
      select(null);
    } else if (message.type === 'select-element') {
      var el = resolve(message.selector);
      if (el && isContent(el)) {
        select(el);
        el.scrollIntoView({ block: 'nearest', behavior: 'smooth' });
      } else {
        select(null);
      }
    } else if (message.type === 'render') {
      document.open();
      document.write(message.html);
      document.close();
    }
  });
})();
</script>"""

# The address rules come from selector.py so both walks stay in step.
REALM_SCRIPT = (
    _SCRIPT_TEMPLATE.replace("__ROOT__", ROOT_ADDRESS)
    .replace("__SEPARATOR__", ADDRESS_SEPARATOR)
    .replace("__SEGMENT__", TAG_SEGMENT_PATTERN)
)


def instrument(document: str) -> str:
    """Append realm styles and script to a document."""
    injection = REALM_STYLE + REALM_SCRIPT
    index = document.lower().rfind("</body")
    if index == -1:
        return document + injection
    return document[:index] + injection + document[index:]


def build_realm_document(
    document: str,
    header: GlobalComponent | None = None,
    footer: GlobalComponent | None = None,
    resolved_entries: dict[str, str] | None = None,
    design_mode: bool = True,
) -> str:
    """
    The document the realm renders.

    Preview mode (design_mode=False) gets globals and resolved content but
    no instrumentation.
    """
    html = substitute(document, resolved_entries) if resolved_entries else document
    html = inject_globals(html, header, footer)
    return instrument(html) if design_mode else html
