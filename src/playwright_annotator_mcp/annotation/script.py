"""
In-page annotation script generator

Renders the self-contained script that scans the DOM for interactive
elements, draws numbered overlays and caches the results in
window.__playwrightAnnotatedElements. The script is a string.Template filled
with JSON-encoded parameters; nothing is spliced in by hand.

Page-side globals:
    window.__playwrightAnnotatedElements   cached AnnotatedElement list
    window.__playwrightAnnotate()          immediate re-scan, returns the list
    window.__playwrightRemoveAnnotations() removes overlay nodes
    window.__playwrightAnnotationPasses    number of scans run on this document
    window.__playwrightAnnotationVersion   SCRIPT_VERSION of the installed script
"""

import json
from dataclasses import dataclass, field
from functools import lru_cache
from string import Template

SCRIPT_VERSION = "2"

OVERLAY_CLASS = "playwright-element-annotation"
CACHE_GLOBAL = "__playwrightAnnotatedElements"
ANNOTATE_GLOBAL = "__playwrightAnnotate"
REMOVE_GLOBAL = "__playwrightRemoveAnnotations"
PASSES_GLOBAL = "__playwrightAnnotationPasses"

ELEMENT_TYPES = (
    "button",
    "link",
    "input",
    "select",
    "textarea",
    "checkbox",
    "radio",
    "submit",
    "file",
    "form",
    "clickable",
)

ELEMENT_COLORS: dict[str, str] = {
    "button": "#FF6B6B",
    "link": "#4ECDC4",
    "input": "#45B7D1",
    "select": "#96CEB4",
    "textarea": "#FFEAA7",
    "checkbox": "#DDA0DD",
    "radio": "#98D8C8",
    "submit": "#F7DC6F",
    "file": "#BB8FCE",
    "form": "#85C1E9",
    "clickable": "#F8B500",
    "default": "#FF69B4",
}

ATTRIBUTE_ALLOWLIST = ("href", "type", "name", "placeholder", "value", "role", "aria-label")

INTERACTIVE_SELECTORS = (
    # Native HTML elements
    "a[href]",
    "button",
    'input:not([type="hidden"])',
    "select",
    "textarea",
    "label[for]",
    "summary",
    # ARIA roles
    '[role="button"]',
    '[role="link"]',
    '[role="checkbox"]',
    '[role="radio"]',
    '[role="menuitem"]',
    '[role="menuitemcheckbox"]',
    '[role="menuitemradio"]',
    '[role="tab"]',
    '[role="switch"]',
    '[role="option"]',
    '[role="treeitem"]',
    '[role="gridcell"]',
    '[role="row"][onclick]',
    '[role="listitem"]',
    # Explicit handlers
    "[onclick]",
    "[ng-click]",
    "[v-on\\3A click]",
    '[contenteditable="true"]',
    '[tabindex]:not([tabindex="-1"])',
    # Element UI / Element Plus
    ".el-button",
    ".el-link",
    ".el-checkbox",
    ".el-radio",
    ".el-switch",
    ".el-input__inner",
    ".el-select",
    ".el-dropdown",
    ".el-menu-item",
    ".el-submenu__title",
    ".el-tabs__item",
    ".el-pagination button",
    ".el-pagination li",
    ".el-table__row",
    ".el-tree-node__content",
    ".el-upload",
    ".el-date-editor",
    ".el-cascader",
    ".el-tag",
    ".el-breadcrumb__item",
    # Ant Design
    ".ant-btn",
    ".ant-input",
    ".ant-select",
    ".ant-checkbox",
    ".ant-radio",
    ".ant-switch",
    ".ant-menu-item",
    ".ant-tabs-tab",
    ".ant-pagination-item",
    ".ant-table-row",
    ".ant-tree-node-content-wrapper",
    ".ant-dropdown-trigger",
    ".ant-tag",
    # Bootstrap
    ".btn",
    ".nav-link",
    ".dropdown-item",
    ".page-link",
    ".list-group-item-action",
    # Common class conventions
    '[class*="btn"]',
    '[class*="click"]',
    '[class*="link"]',
    ".icon-btn",
    ".action",
    ".clickable",
    ".pointer",
)


@dataclass(frozen=True)
class AnnotationScriptParams:
    """Parameters baked into the rendered script"""

    colors: dict[str, str] = field(default_factory=lambda: dict(ELEMENT_COLORS))
    debounce_ms: int = 200
    min_size: int = 10
    text_limit: int = 100
    selectors: tuple[str, ...] = INTERACTIVE_SELECTORS
    attributes: tuple[str, ...] = ATTRIBUTE_ALLOWLIST
    version: str = SCRIPT_VERSION

    def __hash__(self) -> int:
        return hash(
            (
                tuple(sorted(self.colors.items())),
                self.debounce_ms,
                self.min_size,
                self.text_limit,
                self.selectors,
                self.attributes,
                self.version,
            )
        )


DEFAULT_PARAMS = AnnotationScriptParams()

# The pipeline installs listeners once per document. A repeated injection
# (init script followed by an explicit run after navigation) only re-scans.
_INIT_TEMPLATE = Template(
    """
(function() {
  try {
    var params = {
      colors: $colors,
      debounceMs: $debounce_ms,
      minSize: $min_size,
      textLimit: $text_limit,
      selectors: $selectors,
      attributes: $attributes,
      overlayClass: $overlay_class,
      version: $version
    };

    if (window.__playwrightAnnotationArmed) {
      if (document.body && typeof window.__playwrightAnnotate === 'function') {
        window.__playwrightAnnotate();
      }
      return;
    }
    window.__playwrightAnnotationArmed = true;
    window.__playwrightAnnotationVersion = params.version;
    window.__playwrightAnnotatedElements = window.__playwrightAnnotatedElements || [];
    window.__playwrightAnnotationPasses = 0;

    var observer = null;
    var pendingTimer = null;

    function removeAnnotations() {
      var nodes = document.querySelectorAll('.' + params.overlayClass);
      nodes.forEach(function(node) { node.remove(); });
    }

    function hasCandidateAncestor(el, candidates) {
      var parent = el.parentElement;
      while (parent) {
        if (candidates.has(parent)) return true;
        parent = parent.parentElement;
      }
      return false;
    }

    function collectCandidates() {
      var candidates = new Set(document.querySelectorAll(params.selectors.join(',')));
      document.querySelectorAll('*').forEach(function(el) {
        try {
          if (candidates.has(el)) return;
          if (window.getComputedStyle(el).cursor !== 'pointer') return;
          if (!hasCandidateAncestor(el, candidates)) candidates.add(el);
        } catch (e) {}
      });
      return Array.from(candidates);
    }

    function isVisible(rect, style) {
      if (rect.width === 0 || rect.height === 0) return false;
      if (style.display === 'none' || style.visibility === 'hidden' || style.opacity === '0') return false;
      if (rect.bottom < 0 || rect.top > window.innerHeight) return false;
      if (rect.right < 0 || rect.left > window.innerWidth) return false;
      if (rect.width < params.minSize || rect.height < params.minSize) return false;
      return true;
    }

    function classify(el, tagName) {
      var role = el.getAttribute('role');
      if (tagName === 'a') return 'link';
      if (tagName === 'button') return 'button';
      if (tagName === 'input') {
        var inputType = (el.getAttribute('type') || 'text').toLowerCase();
        if (inputType === 'submit' || inputType === 'button') return 'submit';
        if (inputType === 'checkbox') return 'checkbox';
        if (inputType === 'radio') return 'radio';
        if (inputType === 'file') return 'file';
        return 'input';
      }
      if (tagName === 'select') return 'select';
      if (tagName === 'textarea') return 'textarea';
      if (tagName === 'form') return 'form';
      if (role === 'button') return 'button';
      if (role === 'link') return 'link';
      if (role === 'checkbox') return 'checkbox';
      if (role === 'radio') return 'radio';
      return 'clickable';
    }

    function drawOverlay(rect, color, index) {
      var box = document.createElement('div');
      box.className = params.overlayClass;
      box.style.cssText =
        'position: fixed;' +
        'left: ' + rect.left + 'px;' +
        'top: ' + rect.top + 'px;' +
        'width: ' + rect.width + 'px;' +
        'height: ' + rect.height + 'px;' +
        'border: 2px solid ' + color + ';' +
        'background: ' + color + '20;' +
        'pointer-events: none;' +
        'z-index: 2147483646;' +
        'box-sizing: border-box;';

      var label = document.createElement('div');
      label.className = params.overlayClass;
      label.style.cssText =
        'position: fixed;' +
        'left: ' + (rect.left - 2) + 'px;' +
        'top: ' + (rect.top - 18) + 'px;' +
        'background: ' + color + ';' +
        'color: white;' +
        'font-size: 11px;' +
        'font-weight: bold;' +
        'font-family: monospace;' +
        'padding: 1px 4px;' +
        'border-radius: 3px;' +
        'z-index: 2147483647;' +
        'pointer-events: none;' +
        'white-space: nowrap;';
      label.textContent = String(index);

      document.body.appendChild(box);
      document.body.appendChild(label);
    }

    function describe(el, tagName) {
      var selector;
      if (el.id) {
        selector = '#' + el.id;
      } else {
        selector = tagName;
        var classes = Array.from(el.classList).slice(0, 2).join('.');
        if (classes) selector += '.' + classes;
      }

      var text;
      if (tagName === 'input' || tagName === 'textarea') {
        text = el.value || el.placeholder || '';
      } else {
        text = el.innerText || el.textContent || '';
      }
      text = text.trim().substring(0, params.textLimit);

      var attrs = {};
      params.attributes.forEach(function(name) {
        if (el.hasAttribute(name)) attrs[name] = el.getAttribute(name);
      });
      return { selector: selector, text: text, attributes: attrs };
    }

    function annotateElements() {
      try {
        if (!document.body) return [];
        removeAnnotations();
        window.__playwrightAnnotationPasses += 1;

        var results = [];
        var index = 0;
        collectCandidates().forEach(function(el) {
          try {
            var rect = el.getBoundingClientRect();
            var style = window.getComputedStyle(el);
            if (!isVisible(rect, style)) return;

            var tagName = el.tagName.toLowerCase();
            var type = classify(el, tagName);
            var color = params.colors[type] || params.colors['default'];
            drawOverlay(rect, color, index);

            var info = describe(el, tagName);
            results.push({
              index: index,
              type: type,
              tagName: tagName,
              text: info.text,
              selector: info.selector,
              boundingBox: {
                x: Math.round(rect.left),
                y: Math.round(rect.top),
                width: Math.round(rect.width),
                height: Math.round(rect.height)
              },
              attributes: info.attributes
            });
            index++;
          } catch (e) {}
        });

        window.__playwrightAnnotatedElements = results;
        // Drop the mutation records produced by our own overlay nodes
        if (observer) observer.takeRecords();
        return results;
      } catch (e) {
        return [];
      }
    }

    function scheduleAnnotate() {
      if (pendingTimer !== null) clearTimeout(pendingTimer);
      pendingTimer = setTimeout(function() {
        pendingTimer = null;
        annotateElements();
      }, params.debounceMs);
    }

    function setup() {
      if (!document.body) {
        setTimeout(setup, 100);
        return;
      }
      annotateElements();
      window.addEventListener('scroll', scheduleAnnotate, { passive: true });
      window.addEventListener('resize', scheduleAnnotate, { passive: true });
      try {
        observer = new MutationObserver(scheduleAnnotate);
        observer.observe(document.body, {
          childList: true,
          subtree: true,
          attributes: true,
          attributeFilter: ['style', 'class', 'hidden', 'disabled']
        });
      } catch (e) {}
    }

    window.__playwrightAnnotate = annotateElements;
    window.__playwrightRemoveAnnotations = removeAnnotations;

    if (document.readyState === 'loading') {
      document.addEventListener('DOMContentLoaded', setup);
    } else {
      setup();
    }
  } catch (e) {}
})();
"""
)


@lru_cache(maxsize=8)
def build_init_script(params: AnnotationScriptParams = DEFAULT_PARAMS) -> str:
    """
    Render the auto-annotation script.

    Args:
        params: Script parameters (colors, debounce interval, minimum size)

    Returns:
        JavaScript source suitable for page.add_init_script or page.evaluate
    """
    return _INIT_TEMPLATE.substitute(
        colors=json.dumps(params.colors),
        debounce_ms=json.dumps(params.debounce_ms),
        min_size=json.dumps(params.min_size),
        text_limit=json.dumps(params.text_limit),
        selectors=json.dumps(list(params.selectors)),
        attributes=json.dumps(list(params.attributes)),
        overlay_class=json.dumps(OVERLAY_CLASS),
        version=json.dumps(params.version),
    )


# Expressions evaluated against a page that already carries the script
READ_CACHE_JS = f"() => window.{CACHE_GLOBAL} || []"
IS_ARMED_JS = f"() => typeof window.{ANNOTATE_GLOBAL} === 'function'"
SCAN_JS = f"() => window.{ANNOTATE_GLOBAL}()"
REMOVE_JS = f"""() => {{
  if (typeof window.{REMOVE_GLOBAL} === 'function') {{
    window.{REMOVE_GLOBAL}();
  }} else {{
    document.querySelectorAll('.{OVERLAY_CLASS}').forEach(function(node) {{ node.remove(); }});
  }}
}}"""
PASSES_JS = f"() => window.{PASSES_GLOBAL} || 0"
