import os

import pytest

from rpnsh import Machine, Output
from rpnsh.system import expand_glob, expand_user, has_glob


def run(src, m=None):
    m = m or Machine()
    res = m.evaluate(src, final=True)
    assert res.ok, res.error
    return m


@pytest.fixture
def env(monkeypatch):
    """Scratch variable, restored after the test."""
    monkeypatch.setenv('RPNSH_T', 'base')
    return 'RPNSH_T'


class TestEnvironment():
    def test_getenv(self, env):
        assert run('"RPNSH_T" getenv').stack == ['base']

    def test_getenv_unset(self, env, monkeypatch):
        monkeypatch.delenv(env)
        assert run('"RPNSH_T" getenv').stack == ['']

    def test_setenv(self, env):
        m = run('"new" "RPNSH_T" setenv')
        assert os.environ[env] == 'new'
        assert m.stack == []

    def test_unsetenv(self, env):
        run('"RPNSH_T" unsetenv')
        assert env not in os.environ

    def test_append_prepend(self, env):
        run('"end" "RPNSH_T" env-append "start" "RPNSH_T" env-prepend')
        assert os.environ[env] == os.pathsep.join(['start', 'base', 'end'])

    def test_append_to_empty(self, env, monkeypatch):
        monkeypatch.delenv(env)
        run('"only" "RPNSH_T" env-append')
        assert os.environ[env] == 'only'

    def test_env(self, env):
        m = run('env')
        assert 'RPNSH_T=base' in m.stack
        assert m.stack == sorted(m.stack)

    def test_setenv_needs_strings(self, env):
        m = Machine()
        m.stack.extend([1, 'RPNSH_T'])
        assert m.evaluate('setenv').status == 'error'
        assert m.stack == [1, 'RPNSH_T']
        assert os.environ[env] == 'base'


class TestDirectories():
    @pytest.fixture(autouse=True)
    def _cwd(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        (tmp_path / 'sub').mkdir()
        self.root = tmp_path

    def test_cd(self):
        run('"sub" cd')
        assert os.getcwd() == str(self.root / 'sub')

    def test_cd_missing(self):
        m = Machine()
        res = m.evaluate('"nope" cd')
        assert res.status == 'error'
        assert 'cd' in res.error
        assert m.stack == ['nope']
        assert os.getcwd() == str(self.root)

    def test_pushd_popd(self):
        m = run('"sub" pushd')
        assert os.getcwd() == str(self.root / 'sub')
        run('popd', m)
        assert os.getcwd() == str(self.root)
        assert m.dir_stack == []

    def test_popd_empty(self):
        m = Machine()
        res = m.evaluate('popd')
        assert res.status == 'error'
        assert 'popd' in res.error

    def test_pushd_missing_keeps_dir_stack(self):
        m = Machine()
        assert m.evaluate('"nope" pushd').status == 'error'
        assert m.dir_stack == []


class TestFiles():
    def test_write_and_append(self, tmp_path):
        path = tmp_path / 'out.txt'
        m = run(f'"one\n" "{path}" >file "two\n" "{path}" >>file')
        assert path.read_text() == 'one\ntwo\n'
        assert m.stack == []

    def test_write_output(self, tmp_path):
        path = tmp_path / 'out.txt'
        m = Machine()
        m.stack.append(Output('captured\n'))
        run(f'"{path}" >file', m)
        assert path.read_text() == 'captured\n'

    def test_overwrite(self, tmp_path):
        path = tmp_path / 'out.txt'
        path.write_text('old')
        run(f'"new" "{path}" >file')
        assert path.read_text() == 'new'

    def test_write_int_is_an_error(self, tmp_path):
        path = tmp_path / 'out.txt'
        m = Machine()
        assert m.evaluate(f'5 "{path}" >file').status == 'error'
        assert m.stack == [5, str(path)]
        assert not path.exists()

    def test_unwritable(self, tmp_path):
        path = tmp_path / 'missing' / 'out.txt'
        m = Machine()
        res = m.evaluate(f'"x" "{path}" >file')
        assert res.status == 'error'
        assert m.stack == ['x', str(path)]


class TestExpansion():
    @pytest.mark.parametrize('word, expected', [
        ('*.txt',   True),
        ('a?',      True),
        ('[ab]',    True),
        ('plain',   False),
        ('~/x',     False),
    ])
    def test_has_glob(self, word, expected):
        assert has_glob(word) is expected

    def test_expand_glob_sorted(self, tmp_path, monkeypatch):
        for name in ('c.rs', 'a.rs', 'b.rs'):
            (tmp_path / name).write_text('')
        monkeypatch.chdir(tmp_path)
        assert expand_glob('*.rs') == ['a.rs', 'b.rs', 'c.rs']

    def test_expand_user(self, tmp_path, monkeypatch):
        monkeypatch.setenv('HOME', str(tmp_path))
        assert expand_user('~') == str(tmp_path)
        assert expand_user('a/~') == 'a/~'
