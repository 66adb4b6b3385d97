# mediaengines

Building blocks for a front-end that drives command-line media downloaders
such as yt-dlp and youtube-dl. The package does not download media itself.
It handles the work around the downloader. It uses only the standard library.

## What is in it

- `mediaengines.engine` covers engine descriptions.
  - `EnginePaths` creates and names the directory layout: `core`, `core/bin`,
    `core/data` and `tmp/ipc` under a base path.
  - `Engine.from_config(config, paths, find_executable, logger)` builds an
    engine from a parsed JSON configuration. It resolves the engine's
    executable through the `find_executable` callable you pass in.
  - `Engine.from_command(...)` describes an auxiliary tool such as ffmpeg.
  - `Engine.version_string(data)` picks the version word out of the engine's
    `--version` output.
  - `ExeArgs` and `Command` hold the executable and its arguments.
  - `EngineFile` reads and writes engine files and logs any failure.
- `mediaengines.logdata` collects a downloader's output line by line.
  - `LogData` is an ordered list of lines tagged with a task id. A progress
    line is replaced in place rather than appended.
  - `OutputRules` and `LogUpdater` (or the `update_log` function) split raw
    output, skip unwanted lines and recognise progress lines. They follow the
    engine's control structure.
  - `Logger` and `LoggerWrapper` form the application log. `Logger` calls an
    `on_update` callback with the displayed text.
- `mediaengines.progress` formats status text.
  - `duration`, `to_seconds`, `string_elapsed_time` and `Timer` handle
    elapsed time.
  - `PreProcessing` and `PostProcessing` build the animated
    "Processing ..." and "Post Processing ..." texts.
  - `update_text_on_complete_download` builds the summary shown when a
    download ends, from a `FinishedState`.
- `mediaengines.functions` holds the default engine behaviour.
  - `EngineFunctions` (and `GenericFunctions`) parse format listings into
    media properties and fold output into a `LogData`.
  - They also build download options from `UpdateOptions` and quote command
    lines.
  - `OutputFilter` reduces a log to the status text for a running download.
- `mediaengines.youtube_dl` holds the behaviour for youtube-dl and yt-dlp
  engines.
  - `default_config` and `write_default_config` provide the built-in engine
    configurations.
  - `YoutubeDlFunctions` parses yt-dlp's JSON format listing and adds
    progress templates to the options.
  - `YoutubeDlFilter` extracts the file name and progress from the output.
- `mediaengines.updatecheck` checks for engine updates.
  - `update_available`, `parse_remote_version` and
    `normalize_installed_version` compare release dates.
  - `EngineUpdateCheck.check_for_update()` fetches the latest release and
    returns whether it is newer.
- `mediaengines.network` installs engine binaries.
  - `parse_release_metadata` reads a release document.
  - `EngineDownloader.download(engine)` fetches the executable and installs it
    under the bin directory, then returns the installed path.
  - On failure, `download` raises `DownloadError`.
  - It posts progress lines to a `Logger` through `post_message`.

## Installation

```
pip install mediaengines
```

## Example

```python
from mediaengines.logdata import LogData, OutputRules, update_log
from mediaengines.youtube_dl import default_control_structure

rules = OutputRules(
    control_structure=default_control_structure(),
    skip_lines_with_text=["(pass -k to keep)"],
    split_lines_by=["\n"],
    like_youtube_dl=True,
)

output = LogData(post_process_marker="[postprocess]")
update_log(b"[download]  10.0% of 5MiB ETA 00:10", rules, output, 1, False)
update_log(b"[download]  50.0% of 5MiB ETA 00:05", rules, output, 1, False)
print(output.to_string())   # only the latest progress line is kept
```

Time helpers:

```python
from mediaengines.progress import duration, to_seconds

duration(3_725_000)      # "01:02:05"
to_seconds("01:02:05")   # 3725
```

## What it does not do

- **No engine collection.** The package has no object that loads every
  engine configuration in a directory. It does not add or remove plug-in
  engines, and it does not keep a default engine per tab. You build each
  `Engine` yourself with `Engine.from_config` or `Engine.from_command`.
- **No process handling.** It never starts the downloader or any other
  program. You run the process and pass its output to `LogData`,
  `update_log` or `EngineFunctions.process_data`.
- **No user interface or command.** There is no window and no command-line
  entry point.

## Running the tests

```
pip install "mediaengines[test]"
pytest
```