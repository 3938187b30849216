import os
import stat
import pytest
from executors.base import StepResult, ALREADY_ACHIEVED
from executors.script import ScriptExecutor


def write_script(directory, name, body):
    path = directory / name
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def scripts(tmp_path):
    d = tmp_path / "scripts"
    d.mkdir()
    return d


@pytest.mark.asyncio
async def test_stdout_and_args(scripts):
    write_script(scripts, "echo.sh", 'echo "args: $1 $2"\n')
    executor = ScriptExecutor(str(scripts))
    result = await executor.run_step("echo.sh", ["v1", "registry:5000"])
    assert result.ok
    assert result.stdout == "args: v1 registry:5000\n"
    assert result.error_text is None


@pytest.mark.asyncio
async def test_stderr_means_failure(scripts):
    write_script(scripts, "warn.sh", 'echo "out"\necho "something odd" >&2\nexit 0\n')
    result = await ScriptExecutor(str(scripts)).run_step("warn.sh", [])
    assert result.exit_code == 0
    assert not result.ok
    assert result.error_text == "something odd\n"


@pytest.mark.asyncio
async def test_lenient_stderr(scripts):
    write_script(scripts, "warn.sh", 'echo "something odd" >&2\n')
    result = await ScriptExecutor(str(scripts), strict_stderr=False).run_step("warn.sh", [])
    assert result.ok


@pytest.mark.asyncio
async def test_nonzero_exit(scripts):
    write_script(scripts, "fail.sh", "exit 3\n")
    result = await ScriptExecutor(str(scripts)).run_step("fail.sh", [])
    assert not result.ok
    assert result.exit_code == 3
    assert result.error_text == "exit status 3"


@pytest.mark.asyncio
async def test_missing_script(scripts):
    executor = ScriptExecutor(str(scripts))
    assert not await executor.validate("nope.sh")
    result = await executor.run_step("nope.sh", [])
    assert result.exit_code == 127
    assert "nope.sh" in result.stderr


@pytest.mark.asyncio
async def test_validate_requires_exec_bit(scripts):
    path = scripts / "plain.sh"
    path.write_text("#!/bin/sh\n")
    executor = ScriptExecutor(str(scripts))
    assert not await executor.validate("plain.sh")
    write_script(scripts, "ok.sh", "exit 0\n")
    assert await executor.validate("ok.sh")
    assert executor.script_path("ok.sh") == os.path.join(str(scripts), "ok.sh")


@pytest.mark.asyncio
async def test_non_utf8_output_is_not_an_error(scripts):
    write_script(scripts, "pull.sh", "printf 'pulled \\377\\376 layer\\n'\nexit 0\n")
    result = await ScriptExecutor(str(scripts)).run_step("pull.sh", [])
    assert result.ok
    assert result.stdout.startswith("pulled ")
    assert "\ufffd" in result.stdout
    assert result.stdout.endswith(" layer\n")


def test_already_achieved_phrase():
    result = StepResult(stderr=ALREADY_ACHIEVED + "\n", exit_code=1)
    assert not result.ok
    assert result.already_achieved
    assert not StepResult(stderr="Desired container number").already_achieved
