"""JavaScript expressions evaluated inside the host's page contexts."""

import json

# Clones the #cascade chat panel without its input box and collects every
# readable stylesheet rule. Returns {error} when the panel is not in this context.
CAPTURE_SCRIPT = r"""(() => {
    const cascade = document.getElementById('cascade');
    if (!cascade) return { error: 'cascade not found' };

    const cascadeStyles = window.getComputedStyle(cascade);
    const clone = cascade.cloneNode(true);

    const inputContainer = clone.querySelector('[contenteditable="true"]')?.closest('div[id^="cascade"] > div');
    if (inputContainer) {
        inputContainer.remove();
    }

    const html = clone.outerHTML;

    let allCSS = '';
    for (const sheet of document.styleSheets) {
        try {
            for (const rule of sheet.cssRules) {
                allCSS += rule.cssText + '\n';
            }
        } catch (e) { }
    }

    return {
        html: html,
        css: allCSS,
        backgroundColor: cascadeStyles.backgroundColor,
        color: cascadeStyles.color,
        fontFamily: cascadeStyles.fontFamily
    };
})()"""

_INJECTION_TEMPLATE = r"""(async () => {
    const cancel = document.querySelector('[data-tooltip-id="input-send-button-cancel-tooltip"]');
    if (cancel && cancel.offsetParent !== null) return { ok:false, reason:"busy" };

    const editors = [...document.querySelectorAll('#cascade [data-lexical-editor="true"][contenteditable="true"][role="textbox"]')]
        .filter(el => el.offsetParent !== null);
    const editor = editors.at(-1);
    if (!editor) return { ok:false, reason:"editor_not_found" };

    editor.focus();
    document.execCommand?.("selectAll", false, null);
    document.execCommand?.("delete", false, null);

    let inserted = false;
    try { inserted = !!document.execCommand?.("insertText", false, __TEXT__); } catch {}
    if (!inserted) {
        editor.textContent = __TEXT__;
        editor.dispatchEvent(new InputEvent("beforeinput", { bubbles:true, inputType:"insertText", data:__TEXT__ }));
        editor.dispatchEvent(new InputEvent("input", { bubbles:true, inputType:"insertText", data:__TEXT__ }));
    }

    await new Promise(r => requestAnimationFrame(() => requestAnimationFrame(r)));

    const submit = document.querySelector("svg.lucide-arrow-right")?.closest("button");
    if (submit && !submit.disabled) {
        submit.click();
        return { ok:true, method:"click_submit" };
    }

    editor.dispatchEvent(new KeyboardEvent("keydown", { bubbles:true, key:"Enter", code:"Enter" }));
    editor.dispatchEvent(new KeyboardEvent("keyup", { bubbles:true, key:"Enter", code:"Enter" }));

    return { ok:true, method:"enter_keypress" };
})()"""


def js_string_literal(text) -> str:
    """Encode text as a JavaScript string literal.

    json.dumps escapes quotes, backslashes, control characters and, with
    ensure_ascii, the U+2028/U+2029 line separators JavaScript rejects in
    string literals.
    """
    return json.dumps(str(text), ensure_ascii=True)


def injection_script(text) -> str:
    """Build the expression that types ``text`` into the chat editor and submits it."""
    return _INJECTION_TEMPLATE.replace("__TEXT__", js_string_literal(text))
