"""
Tests for engine discovery and the engine-backed tiers.
"""

import os
import time
import subprocess
from pathlib import Path

import pytest

from conftest import FakeProbe, CountingRunner, posix_only, FAKE_VERSION, _make_executable


class TestPlatformPathResolver:
    """Tests for candidate resolution."""

    def test_explicit_path_comes_first(self):
        """A configured path is tried before the per-OS candidates."""
        from converter import PlatformPathResolver

        resolver = PlatformPathResolver(explicit_path='/opt/custom/soffice', system='Linux')
        names = resolver.candidate_names()

        assert names[0] == '/opt/custom/soffice'
        assert 'libreoffice' in names

    def test_per_os_candidates(self):
        """Candidate lists are plain data keyed by operating system."""
        from converter import PlatformPathResolver

        mac = PlatformPathResolver(system='Darwin')
        assert mac.candidate_names()[0] == '/Applications/LibreOffice.app/Contents/MacOS/soffice'

        custom = PlatformPathResolver(candidates={'Linux': ['mysoffice']}, system='Linux')
        assert custom.candidate_names() == ['mysoffice']

    def test_resolve_skips_missing_and_dedupes(self):
        """Bare names go through PATH lookup, absolute paths must exist."""
        from converter import PlatformPathResolver

        resolver = PlatformPathResolver(
            candidates={'Linux': ['libreoffice', 'soffice', '/usr/bin/soffice', '/opt/missing/soffice']},
            system='Linux',
            which=lambda name: '/usr/bin/soffice' if name in ('libreoffice', 'soffice') else None,
            isfile=lambda path: path == '/usr/bin/soffice',
        )

        assert resolver.resolve() == ['/usr/bin/soffice']


class TestPlatformEngineProbe:
    """Tests for memoized engine discovery."""

    def _probe(self, runner, paths=('/usr/bin/soffice',)):
        from converter import PlatformEngineProbe, PlatformPathResolver

        resolver = PlatformPathResolver(
            candidates={'Linux': list(paths)},
            system='Linux',
            which=lambda name: None,
            isfile=lambda path: path in paths,
        )
        return PlatformEngineProbe(resolver, runner=runner)

    def test_probe_is_memoized(self):
        """The version query runs once however often presence is asked."""
        runner = CountingRunner()
        probe = self._probe(runner)

        assert not probe.probed
        first = probe.probe()
        second = probe.probe()

        assert first is second
        assert first.available
        assert first.resolved_path == '/usr/bin/soffice'
        assert first.version == FAKE_VERSION
        assert len(runner.calls) == 1
        assert runner.calls[0] == ['/usr/bin/soffice', '--version']

    def test_absence_is_memoized(self):
        """A failed probe is cached too; resolution is not repeated."""
        from converter import PlatformEngineProbe, PlatformPathResolver

        lookups = []

        def which(name):
            lookups.append(name)
            return None

        resolver = PlatformPathResolver(system='Linux', which=which, isfile=lambda path: False)
        probe = PlatformEngineProbe(resolver, runner=CountingRunner())

        assert probe.probe().available is False
        count = len(lookups)
        assert probe.probe().available is False
        assert len(lookups) == count

    def test_failing_candidate_falls_through(self):
        """A candidate whose version query fails is skipped."""
        calls = []

        def runner(cmd, **kwargs):
            calls.append(cmd[0])
            if cmd[0] == '/broken/soffice':
                return subprocess.CompletedProcess(cmd, 1, '', 'boom')
            return subprocess.CompletedProcess(cmd, 0, 'LibreOffice 24.2\n', '')

        probe = self._probe(runner, paths=('/broken/soffice', '/good/soffice'))
        presence = probe.probe()

        assert presence.resolved_path == '/good/soffice'
        assert presence.version == 'LibreOffice 24.2'
        assert calls == ['/broken/soffice', '/good/soffice']

    def test_version_query_timeout(self):
        """A hanging version query counts as not found."""
        def runner(cmd, **kwargs):
            raise subprocess.TimeoutExpired(cmd, kwargs.get('timeout'))

        presence = self._probe(runner).probe()
        assert presence.available is False
        assert presence.resolved_path is None


class TestExternalEngineAdapter:
    """Tests for the LibreOffice subprocess tier."""

    def _request(self, input_path, output_path, timeout_ms=10000):
        from converter import ConversionRequest, FormatCategory

        return ConversionRequest(
            input_path=Path(input_path),
            output_path=Path(output_path),
            format_category=FormatCategory.PRESENTATION,
            timeout_ms=timeout_ms,
        )

    def test_build_command(self, tmp_path):
        """Headless conversion into the output directory with an isolated profile."""
        from converter import ExternalEngineAdapter

        adapter = ExternalEngineAdapter(FakeProbe('/usr/bin/soffice'))
        profile = tmp_path / 'profile'
        cmd = adapter.build_command('/usr/bin/soffice', tmp_path / 'in.pptx', tmp_path, profile)

        assert cmd[0] == '/usr/bin/soffice'
        assert cmd[1].startswith('-env:UserInstallation=file://')
        assert '--headless' in cmd
        assert cmd[cmd.index('--convert-to') + 1] == 'pdf'
        assert cmd[cmd.index('--outdir') + 1] == str(tmp_path)
        assert cmd[-1] == str(tmp_path / 'in.pptx')

    def test_unavailable_engine(self, tmp_path):
        from converter import ExternalEngineAdapter, EngineUnavailable

        adapter = ExternalEngineAdapter(FakeProbe(None))
        source = tmp_path / 'deck.pptx'
        source.write_bytes(b'x')

        with pytest.raises(EngineUnavailable):
            adapter.attempt(self._request(source, tmp_path / 'out.pdf'))

    @posix_only
    def test_converts_and_moves_output(self, tmp_path, fake_engine, read_pdf):
        """The engine's <stem>.pdf is moved to the requested output path."""
        from converter import ExternalEngineAdapter

        source = tmp_path / 'deck.pptx'
        source.write_bytes(b'not really a deck')
        output = tmp_path / 'out' / 'final.pdf'

        adapter = ExternalEngineAdapter(FakeProbe(fake_engine), settle_delay=1.0)
        produced = adapter.attempt(self._request(source, output))

        assert produced == output
        assert output.exists()
        assert not (output.parent / 'deck.pdf').exists()
        assert 'Rendered by engine' in read_pdf(output).pages[0].extract_text()

    @posix_only
    def test_nonzero_exit(self, tmp_path, failing_engine):
        from converter import ExternalEngineAdapter, EngineInvocationFailed

        source = tmp_path / 'deck.pptx'
        source.write_bytes(b'x')

        adapter = ExternalEngineAdapter(FakeProbe(failing_engine))
        with pytest.raises(EngineInvocationFailed) as exc_info:
            adapter.attempt(self._request(source, tmp_path / 'out.pdf'))

        assert 'could not be loaded' in str(exc_info.value)

    def test_missing_executable(self, tmp_path):
        """An engine path that cannot be executed fails the tier, not the caller."""
        from converter import ExternalEngineAdapter, EngineInvocationFailed

        source = tmp_path / 'deck.pptx'
        source.write_bytes(b'x')

        adapter = ExternalEngineAdapter(FakeProbe(tmp_path / 'no-such-soffice'))
        with pytest.raises(EngineInvocationFailed):
            adapter.attempt(self._request(source, tmp_path / 'out.pdf'))

    @posix_only
    def test_timeout_kills_engine(self, tmp_path, hanging_engine):
        """A hung engine is killed within the budget and leaves no process."""
        from converter import ExternalEngineAdapter, EngineTimeout

        script, pid_file = hanging_engine
        source = tmp_path / 'deck.pptx'
        source.write_bytes(b'x')

        adapter = ExternalEngineAdapter(FakeProbe(script), settle_delay=0.1)
        started = time.monotonic()
        with pytest.raises(EngineTimeout):
            adapter.attempt(self._request(source, tmp_path / 'out.pdf', timeout_ms=500))
        elapsed = time.monotonic() - started

        assert elapsed < 0.5 + 5
        pid = int(pid_file.read_text().strip())
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)

    @posix_only
    @pytest.mark.parametrize('ending, error', [
        ('exit 1', 'EngineInvocationFailed'),
        ('exec sleep 60', 'EngineTimeout'),
    ])
    def test_partial_output_removed(self, tmp_path, ending, error):
        """A <stem>.pdf written before the engine died is not left behind."""
        import converter

        partial = tmp_path / 'deck.pdf'
        script = _make_executable(tmp_path / 'partial_soffice', f"""#!/bin/sh
echo '%PDF-1.4 truncated' > "{partial}"
{ending}
""")
        source = tmp_path / 'deck.pptx'
        source.write_bytes(b'x')

        adapter = converter.ExternalEngineAdapter(FakeProbe(script), settle_delay=0.1)
        with pytest.raises(getattr(converter, error)):
            adapter.attempt(self._request(source, tmp_path / 'final.pdf', timeout_ms=500))

        assert not partial.exists()
        assert not (tmp_path / 'final.pdf').exists()


class TestEmbeddedLibraryAdapter:
    """Tests for in-process conversion routines."""

    def _request(self, input_path, output_path, category):
        from converter import ConversionRequest

        return ConversionRequest(input_path=Path(input_path), output_path=Path(output_path),
                                 format_category=category)

    def test_default_routines_cover_word_only(self):
        from converter import EmbeddedLibraryAdapter, FormatCategory

        adapter = EmbeddedLibraryAdapter()
        assert adapter.supports(FormatCategory.WORD_PROCESSING)
        assert not adapter.supports(FormatCategory.PRESENTATION)
        assert not adapter.supports(FormatCategory.SPREADSHEET)

    def test_docx_rendering(self, tmp_path, make_docx, read_pdf):
        from converter import EmbeddedLibraryAdapter, FormatCategory

        source = make_docx("Quarterly Report", ["Revenue grew in every region."])
        output = tmp_path / 'letter.pdf'

        EmbeddedLibraryAdapter().attempt(self._request(source, output, FormatCategory.WORD_PROCESSING))

        text = read_pdf(output).pages[0].extract_text()
        assert 'Quarterly Report' in text
        assert 'Revenue grew' in text

    def test_docx_keeps_body_order(self, tmp_path, read_pdf):
        """Tables render where they sit between paragraphs."""
        from docx import Document
        from converter import EmbeddedLibraryAdapter, FormatCategory

        doc = Document()
        doc.add_paragraph('Before the table')
        table = doc.add_table(rows=1, cols=2)
        table.cell(0, 0).text = 'CellAlpha'
        table.cell(0, 1).text = 'CellBeta'
        doc.add_paragraph('After the table')
        source = tmp_path / 'ordered.docx'
        doc.save(source)
        output = tmp_path / 'ordered.pdf'

        EmbeddedLibraryAdapter().attempt(self._request(source, output, FormatCategory.WORD_PROCESSING))

        text = read_pdf(output).pages[0].extract_text()
        assert text.index('Before the table') < text.index('CellAlpha') < text.index('After the table')

    def test_missing_routine(self, tmp_path):
        from converter import EmbeddedLibraryAdapter, EngineUnavailable, FormatCategory

        source = tmp_path / 'book.xlsx'
        source.write_bytes(b'x')

        with pytest.raises(EngineUnavailable):
            EmbeddedLibraryAdapter().attempt(self._request(source, tmp_path / 'o.pdf', FormatCategory.SPREADSHEET))

    def test_routine_exception_is_classified(self, tmp_path):
        from converter import EmbeddedLibraryAdapter, EngineInvocationFailed, FormatCategory

        def broken(content):
            raise KeyError('word/document.xml')

        source = tmp_path / 'letter.docx'
        source.write_bytes(b'x')
        adapter = EmbeddedLibraryAdapter({FormatCategory.WORD_PROCESSING: broken})

        with pytest.raises(EngineInvocationFailed) as exc_info:
            adapter.attempt(self._request(source, tmp_path / 'o.pdf', FormatCategory.WORD_PROCESSING))
        assert isinstance(exc_info.value.__cause__, KeyError)
