"""Tests for the persistent Policy builder and its compile pipeline."""

from __future__ import annotations

import pytest

from cspolicy.constants import HTTPS, NONE, SELF, UNSAFE_EVAL, UNSAFE_INLINE
from cspolicy.errors import (
    FatalPolicyError,
    InvalidReportURI,
    InvalidSandboxToken,
    InvalidSource,
    UnknownDirective,
)
from cspolicy.policy import CompiledPolicy, Directive, Fragment, Policy


def _sorted() -> Policy:
    return Policy(deterministic_order=True)


FULL_POLICY = (
    Policy()
    .default_src(NONE)
    .script_src(UNSAFE_INLINE)
    .script_src(UNSAFE_EVAL)
    .object_src("localhost")
    .style_src("example.com")
    .img_src("example.com:*")
    .media_src("example.com:4567")
    .frame_src("https://example.com")
    .font_src("http://example.com:4321")
    .connect_src(SELF)
    .sandbox("mudpies!")
    .report_uri("http://example.com/reports")
)


# ── Builder ──────────────────────────────────────────────────────────────


class TestBuilder:
    def test_new_policy_is_empty(self):
        assert len(Policy()) == 0
        assert Policy().fragments == ()

    def test_one_fragment_per_token(self):
        policy = Policy().img_src("a.com", "b.com", "c.com")
        assert policy.fragments == (
            Fragment("img-src", "a.com"),
            Fragment("img-src", "b.com"),
            Fragment("img-src", "c.com"),
        )

    def test_every_directive_method_tags_its_name(self):
        names = [f.name for f in FULL_POLICY]
        assert names == [
            "default-src",
            "script-src",
            "script-src",
            "object-src",
            "style-src",
            "img-src",
            "media-src",
            "frame-src",
            "font-src",
            "connect-src",
            "sandbox",
            "report-uri",
        ]

    def test_repr_lists_fragments(self):
        assert repr(FULL_POLICY) == (
            "Policy([{default-src 'none'} {script-src 'unsafe-inline'} "
            "{script-src 'unsafe-eval'} {object-src localhost} {style-src example.com} "
            "{img-src example.com:*} {media-src example.com:4567} "
            "{frame-src https://example.com} {font-src http://example.com:4321} "
            "{connect-src 'self'} {sandbox mudpies!} {report-uri http://example.com/reports}])"
        )

    def test_add_generic_directive(self):
        assert Policy().add("img-src", "*") == Policy().img_src("*")

    def test_add_unknown_directive(self):
        with pytest.raises(UnknownDirective) as exc_info:
            Policy().add("frame-ancestors", SELF)
        assert exc_info.value.token == "frame-ancestors"

    def test_requires_at_least_one_value(self):
        with pytest.raises(TypeError):
            Policy().img_src()

    def test_non_string_value_rejected(self):
        with pytest.raises(TypeError, match="must be str"):
            Policy().img_src(SELF, 443)

    def test_deterministic_order_inherited_by_forks(self):
        assert _sorted().img_src("*").script_src(SELF).deterministic_order is True
        assert Policy().img_src("*").deterministic_order is False

    def test_with_options_keeps_fragments(self):
        policy = Policy().script_src(SELF).img_src("*")
        sorted_policy = policy.with_options(deterministic_order=True)
        assert sorted_policy.fragments == policy.fragments
        assert policy.deterministic_order is False

    def test_equality_and_hash(self):
        a = Policy().img_src("*")
        b = Policy().img_src("*")
        assert a == b
        assert hash(a) == hash(b)
        assert a != a.with_options(deterministic_order=True)


# ── Fork isolation ───────────────────────────────────────────────────────


class TestForkIsolation:
    def test_sibling_forks_do_not_see_each_other(self):
        base = _sorted().default_src(SELF)
        a = base.img_src("a.example.com")
        b = base.script_src("b.example.com")

        assert a.compile() == "default-src 'self'; img-src a.example.com"
        assert b.compile() == "default-src 'self'; script-src b.example.com"
        assert base.compile() == "default-src 'self'"

    def test_fork_order_does_not_matter(self):
        base = _sorted().default_src(SELF).img_src(SELF)
        b = base.script_src("b.com")
        a = base.script_src("a.com")
        assert "b.com" not in a.compile()
        assert "a.com" not in b.compile()

    def test_interleaved_deep_forks(self):
        base = _sorted().default_src(SELF)
        branches = [base]
        for i in range(20):
            branches.append(branches[-1].img_src(f"host{i}.example.com"))
        forks = [branch.script_src(f"fork{i}.example.com") for i, branch in enumerate(branches)]

        for i, fork in enumerate(forks):
            compiled = fork.compile()
            assert f"script-src fork{i}.example.com" in compiled
            assert compiled.count("fork") == 1
            assert compiled.count(".example.com") == i + 1

    def test_parent_unchanged_after_fork(self):
        base = Policy().default_src(NONE)
        before = base.fragments
        base.default_src(SELF)
        base.sandbox("allow-forms")
        assert base.fragments == before
        assert len(base) == 1

    def test_fragments_are_fresh_tuples(self):
        base = Policy().img_src("*")
        a = base.script_src(SELF)
        b = base.script_src(SELF)
        assert a.fragments is not b.fragments
        assert a.fragments is not base.fragments


# ── None override ────────────────────────────────────────────────────────


class TestNoneOverride:
    def test_chaining(self):
        compiled = _sorted().default_src(NONE).img_src("*").sandbox("allow-forms").must_compile()
        assert compiled == "default-src 'none'; img-src *; sandbox allow-forms"

    def test_derived_policy_adds_directive(self):
        base = _sorted().default_src(NONE).img_src("*").sandbox("allow-forms")
        derived = base.script_src(SELF)
        assert base.must_compile() == "default-src 'none'; img-src *; sandbox allow-forms"
        assert derived.must_compile() == (
            "default-src 'none'; img-src *; sandbox allow-forms; script-src 'self'"
        )

    def test_none_does_not_leak_forward(self):
        p = _sorted().default_src(NONE).img_src("*").sandbox("allow-forms")
        derived = p.default_src(SELF).img_src(NONE)
        assert derived.must_compile() == "default-src 'self'; img-src 'none'; sandbox allow-forms"
        assert p.must_compile() == "default-src 'none'; img-src *; sandbox allow-forms"

    def test_sandbox_none_drops_directive(self):
        p = _sorted().default_src(NONE).img_src("*").sandbox("allow-forms")
        without = p.sandbox(NONE)
        assert without.must_compile() == "default-src 'none'; img-src *"
        assert without.sandbox("allow-popups").must_compile() == (
            "default-src 'none'; img-src *; sandbox allow-popups"
        )

    def test_report_uri_none_drops_directive(self):
        p = _sorted().default_src(SELF).report_uri("/csp").report_uri(NONE)
        assert p.compile() == "default-src 'self'"

    def test_none_in_same_call_resets(self):
        assert Policy().img_src(SELF, NONE).compile() == "img-src 'none'"
        assert Policy().img_src(NONE, SELF, HTTPS).compile() == "img-src 'self' https:"


# ── Check / compile ──────────────────────────────────────────────────────


class TestCompile:
    def test_full_policy_compiles_in_declaration_order(self):
        assert FULL_POLICY.compile() == (
            "default-src 'none'; script-src 'unsafe-inline' 'unsafe-eval'; "
            "object-src localhost; style-src example.com; img-src example.com:*; "
            "media-src example.com:4567; frame-src https://example.com; "
            "font-src http://example.com:4321; connect-src 'self'; "
            "sandbox mudpies!; report-uri http://example.com/reports"
        )

    def test_deterministic_order_sorts_by_name(self):
        policy = _sorted().script_src(SELF).default_src(NONE).connect_src(SELF)
        assert policy.compile() == "connect-src 'self'; default-src 'none'; script-src 'self'"

    def test_declaration_order_without_sorting(self):
        policy = Policy().script_src(SELF).default_src(NONE).script_src(HTTPS)
        assert policy.compile() == "script-src 'self' https:; default-src 'none'"

    def test_empty_policy_compiles_to_empty_string(self):
        assert Policy().compile() == ""

    def test_compile_returns_compiled_policy(self):
        assert isinstance(Policy().img_src("*").compile(), CompiledPolicy)

    def test_empty_report_uri_is_skipped(self):
        assert _sorted().default_src(SELF).report_uri("").compile() == "default-src 'self'"

    def test_check_returns_compacted_directives(self):
        directives = _sorted().img_src("a.com").img_src(NONE).img_src("b.com").script_src(SELF).check()
        assert directives == (
            Directive("img-src", ("b.com",)),
            Directive("script-src", ("'self'",)),
        )

    def test_invalid_source(self):
        with pytest.raises(InvalidSource) as exc_info:
            Policy().img_src("example.com/blah").compile()
        assert exc_info.value.token == "example.com/blah"
        assert str(exc_info.value) == "unexpected source: 'example.com/blah'"

    def test_invalid_sandbox_token(self):
        with pytest.raises(InvalidSandboxToken) as exc_info:
            Policy().sandbox("allow-forms", "allow scripts").compile()
        assert exc_info.value.token == "allow scripts"

    def test_invalid_report_uri(self):
        with pytest.raises(InvalidReportURI):
            Policy().report_uri("http://[::1").compile()

    def test_report_uri_cannot_smuggle_directives(self):
        policy = Policy().default_src(SELF).report_uri("/r; script-src *")
        with pytest.raises(InvalidReportURI) as exc_info:
            policy.compile()
        assert exc_info.value.token == "/r; script-src *"

    def test_report_uri_with_space_in_host(self):
        with pytest.raises(InvalidReportURI):
            Policy().report_uri("http://exa mple.com/r").compile()

    def test_first_error_in_sorted_order(self):
        policy = _sorted().script_src("bad/one").img_src("bad/two")
        with pytest.raises(InvalidSource) as exc_info:
            policy.check()
        assert exc_info.value.token == "bad/two"

    def test_none_mixed_with_sources_is_compacted_before_validation(self):
        assert Policy().img_src(NONE, "http:").compile() == "img-src http:"

    def test_must_compile_raises_fatal(self):
        with pytest.raises(FatalPolicyError) as exc_info:
            Policy().img_src("https://").must_compile()
        assert isinstance(exc_info.value.__cause__, InvalidSource)
