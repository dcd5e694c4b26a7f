# tfworkspace

Manage per-resource Terraform working directories from Python.

`tfworkspace` gives each managed resource its own directory. In that directory
it writes the `main.tf.json` configuration and a seed `terraform.tfstate`. It
runs Terraform operations through an executor that you supply, and it turns
Terraform's JSON logs into readable exceptions. The package needs nothing
beyond the standard library.

## Installation

```
pip install tfworkspace
```

For development:

```
pip install -e ".[test]"
pytest
```

## Modules

### `tfworkspace.files`

- `ProviderRequirement(source, version)` describes the provider.
- `Setup(version, requirement, configuration, client_metadata)` describes the
  Terraform setup.
  - `as_map()` returns the setup as a plain dict.
  - `filter_sensitive_information(text)` replaces every non-empty string value
    of `configuration` in `text` with `REDACTED`.
- `Terraformed` describes the managed resource: name, uid, Terraform resource
  type and schema version, parameters, observation, annotations and an optional
  `deletion_timestamp`. The external name is read from the
  `ANNOTATION_KEY_EXTERNAL_NAME` annotation.
- `ResourceConfig` holds per-resource settings:
  - `operation_timeouts`.
  - A `set_identifier_argument_fn`. By default it sets the `name` parameter to
    the external name.
  - An optional `get_id_fn(external_name, parameters, setup_map)`. Without it,
    the external name is used as the Terraform id.
- `FileProducer(directory, resource, setup, config)` writes the workspace
  files.
  - `write_main_tf()` writes `main.tf.json` with keys in sorted order and file
    mode `0600`. The file holds:
    - the provider requirement and configuration;
    - the resource parameters;
    - a `lifecycle.prevent_destroy` flag, which is false once the resource is
      being deleted;
    - a `timeouts` block, when any timeout is set.
  - `ensure_tf_state()` writes a state file built from the parameters, the
    observation (which wins on conflicts) and the id. It writes the file only
    when the state is empty and the resource is not being deleted. The private
    metadata comes from the `ANNOTATION_KEY_PRIVATE_RAW_ATTRIBUTE` annotation,
    with configured timeouts merged in, and is stored base64-encoded.
  - `is_state_empty()` returns `True` in any of these cases:
    - the state file is missing;
    - the state has no resource attributes;
    - the attributes have no `id`;
    - the `id` is an empty string.

    It raises `NonStringIDError` when the `id` is not a string.

### `tfworkspace.workspace`

`Workspace(directory, executor, *, logger=None, last_operation=None, filter_fn=None)`
runs Terraform in one directory.

- `apply()` returns an `ApplyResult` holding the parsed state file.
- `destroy()` runs `terraform destroy`.
- `refresh()` runs `terraform apply -refresh-only` and returns a
  `RefreshResult`. While another operation is running, it returns only
  `is_applying` or `is_destroying`. After a finished operation, it clears
  `last_operation`.
- `plan()` reads the `change_summary` line of `terraform plan -json` and
  returns a `PlanResult(exists, up_to_date)`. It raises `ChangeSummaryError`
  when that line is missing or cannot be read.
- `apply_async(callback)` and `destroy_async(callback)` run the command on a
  background thread and return the thread. When the command finishes, the
  callback receives the error, or `None`. Calling `destroy_async` again after a
  destroy has started does nothing and returns `None`.

Failures:

- While an operation is running, the blocking calls raise
  `OperationInProgressError`.
- A failed command raises `ApplyFailed`, `DestroyFailed`, `RefreshFailed` or
  `PlanFailed`.

The executor is any object with a method
`run(args, cwd, env) -> CommandResult`. A `CommandResult` holds the combined
`output` and the `returncode`. Log output passes through `filter_fn` before
it is logged.

### `tfworkspace.store`

`WorkspaceStore(executor, *, base_dir=None, provider_runner=None, logger=None)`
keeps one `Workspace` per resource uid, under `base_dir`. `base_dir` defaults
to the system temporary directory.

`workspace(resource, setup, config)` prepares the workspace and returns it:

1. Creates the directory.
2. Writes the state and configuration files, unless an operation is running.
3. Starts the provider runner and stores its reattach configuration in
   `TF_REATTACH_PROVIDERS`.
4. Runs `terraform init -input=false` when no `.terraform.lock.hcl` exists yet.
   If init fails, it raises `WorkspaceInitError`.

`remove(obj)` deletes the workspace directory of `obj.uid` and forgets the
workspace.

### `tfworkspace.operation`

`Operation` records the type, start time and end time of the last operation,
safely across threads. Its methods are:

- `mark_start(op_type)`
- `mark_end()`
- `flush()`
- `is_running()`
- `is_ended()`
- `start_time()`
- `end_time()`

### `tfworkspace.timeouts`

- `OperationTimeouts(read, create, update, delete)` holds `timedelta` values.
  - `as_parameter()` renders the set timeouts as strings such as `"30s"` or
    `"2m0s"`.
  - `as_metadata()` renders them in nanoseconds.
- `format_duration(delta)` produces those duration strings.
- `insert_timeouts_meta(existing_meta, timeouts)` merges the timeouts into
  private metadata under `TF_META_TIMEOUT_KEY`.

### `tfworkspace.provider_runner`

- `NoOpProviderRunner().start()` returns `""`.
- `SharedProvider(path, name, launcher, *, args=(), protocol_version=5, timeout=timedelta(minutes=1), logger=None)`
  runs one long-lived provider plugin.
  - On the first `start()`, it launches the plugin through
    `launcher.launch(path, args, env)`. The environment contains
    `TF_PLUGIN_MAGIC_COOKIE`.
  - It then waits for the line announcing the `unix|...|grpc` address and
    returns the reattach configuration as JSON.
  - Later calls return the cached value while the plugin runs.
  - If no address is announced in time, it raises `ReattachTimeoutError`.

### `tfworkspace.finalizer`

`WorkspaceFinalizer(store, finalizer)` wraps another finalizer.

- `add_finalizer(obj)` delegates to the wrapped finalizer.
- `remove_finalizer(obj)` first removes the object's workspace from the store
  and then delegates. If the store fails, it raises `WorkspaceRemovalError`.

### `tfworkspace.errors`

`TerraformError` and its subclasses `ApplyFailed`, `DestroyFailed`,
`RefreshFailed` and `PlanFailed` are built from Terraform's JSON log. The
message joins the error-level entries, for example:

```
apply failed: Missing required argument: The argument "name" is required, ...
```

If the log cannot be parsed, the message begins with the parse error.
`parse_terraform_logs(logs)` returns the parsed `TerraformLog` records.

## Example

```python
import tempfile

from tfworkspace.files import (
    ANNOTATION_KEY_EXTERNAL_NAME,
    FileProducer,
    ProviderRequirement,
    ResourceConfig,
    Setup,
    Terraformed,
)
from tfworkspace.workspace import CommandResult, Workspace

directory = tempfile.mkdtemp()
resource = Terraformed(
    name="example",
    uid="1234",
    terraform_resource_type="null_resource",
    parameters={"param": "value"},
    annotations={ANNOTATION_KEY_EXTERNAL_NAME: "some-id"},
)
setup = Setup(
    requirement=ProviderRequirement(source="hashicorp/null", version="3.2.0"),
    configuration={"token": "token"},
)

producer = FileProducer(directory, resource, setup, ResourceConfig())
producer.ensure_tf_state()
producer.write_main_tf()


class Recorder:
    def run(self, args, cwd, env):
        print("would run:", args, "in", cwd)
        return CommandResult(output=b"", returncode=0)


ws = Workspace(directory, Recorder(), filter_fn=setup.filter_sensitive_information)
ws.destroy()
```

## What the package does not do

- It never starts a process itself. Terraform commands go through the
  executor you pass in, and provider plugins go through the `ProcessLauncher`
  you pass in. You provide the code that actually runs the `terraform` tool.
- It installs no command-line program.
- It does not talk to any cluster or API server, and it does not read secrets.
  A resource's parameters, observation and annotations must be filled in by
  the caller on `Terraformed`.