# kindtool

A small toolkit for working with local Kubernetes clusters whose nodes run
as containers. It has no dependencies outside the standard library.

## Modules

- **`kindtool.errors`** – `KindError`, which carries a message, an optional
  cause and a captured stack; `new`, `new_without_stack`, `errorf`, `wrap`,
  `wrapf` and `with_stack` to build them; `stack_trace` to find the deepest
  recorded stack in a cause chain. `Aggregate` holds several errors,
  de-duplicates their messages in its string form and answers `contains(target)`;
  `new_aggregate` flattens nested aggregates and reduces a single error to
  itself, and `errors` returns the errors of the deepest aggregate in a chain.
- **`kindtool.concurrent`** – `until_error_concurrent(funcs)` runs callables in
  threads and raises the first error seen; `aggregate_concurrent(funcs)` waits
  for all and raises one error as is, or several as an aggregate.
- **`kindtool.cmdexec`** – the `Cmd` protocol, `LocalCmd` (a local process with
  settable environment, stdin, stdout and stderr), `LocalCmder` and `command`.
  A failing command raises an error wrapping `RunError`, which records the
  command, its combined output and the underlying error;
  `run_error_for_error` finds it in a cause chain. Helpers: `output`,
  `output_lines`, `combined_output_lines`, `inherit_output`, `pretty_command`,
  `run_with_stdout_reader` and `run_with_stdin_writer`.
- **`kindtool.fs`** – `temp_dir` (on macOS returns the mountable `/private/var`
  form), `is_abs` (POSIX paths count as absolute everywhere), recursive `copy`
  that dereferences symlinks and keeps modes, and `copy_file`.
- **`kindtool.roles`** – the `Node` protocol and the role names
  `CONTROL_PLANE_ROLE`, `WORKER_ROLE` and `EXTERNAL_LOAD_BALANCER_ROLE`;
  `select_nodes_by_role`, `internal_nodes`, `external_load_balancer_node`,
  `api_server_endpoint_node`, `control_plane_nodes` (sorted by name),
  `bootstrap_control_plane_node` and `secondary_control_plane_nodes`.
- **`kindtool.nodeutil`** – operations run inside a node: `kube_version`,
  `write_file`, `copy_node_to_node`, `load_image_archive`, `parse_snapshotter`,
  `image_id`, `image_tags` and `retag_image`.
- **`kindtool.imageload`** – `load_docker_images` and
  `load_image_archive_into_nodes`, with the helpers `remove_duplicates`,
  `sanitize_image`, `check_if_image_retag_required`, `docker_image_id`,
  `save_images`, `load_image` and `select_nodes`.
- **`kindtool.version`** – `version`, `display_version`, `truncate` and the
  `main` entry point of the version command.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Command line

```
kindtool-version
```

prints the full version line: the tool version, the Python version and the
platform. With `-q` / `--quiet` it prints only the semantic version.

## Examples

Wrapping and aggregating errors:

```python
from kindtool import errors

first = errors.new("foo")
second = errors.errorf("bar")
err = errors.wrapf(errors.new_aggregate([first, second]), "baz: %s", "quux")
assert errors.errors(err) == [first, second]
```

Running a command and reading its output:

```python
from kindtool import cmdexec

lines = cmdexec.output_lines(cmdexec.command("echo", "hello"))
print(lines)                                          # ['hello']
print(cmdexec.pretty_command("echo", "hello world"))  # echo 'hello world'
```

Normalising image references the way the container runtime stores them:

```python
from kindtool.imageload import sanitize_image, remove_duplicates

sanitize_image("ubuntu:18.04")                   # 'docker.io/library/ubuntu:18.04'
remove_duplicates(["one", "two", "two", "one"])  # ['one', 'two']
```

Finding the containerd snapshotter in the output of `containerd config dump`:

```python
from kindtool.nodeutil import parse_snapshotter

parse_snapshotter(config_text)   # e.g. 'overlayfs'
```

## Loading images

Nodes are any objects implementing `kindtool.roles.Node`: a `role()` method,
a `command(name, *args)` method returning a `Cmd` that runs inside the node,
and a string form that is the node's name.

`load_docker_images(node_list, image_names, node_names, logger=None)` looks up
each image's ID with `docker image inspect`, then for every selected node
(all nodes when `node_names` is empty) skips it if the image is already there,
re-tags it with `ctr images tag` if the image is present under another tag, and
otherwise saves the images with `docker save` into a temporary archive and
imports it with `ctr images import` on every node that needs it. Progress is
reported through the given `logging.Logger`.

`load_image_archive_into_nodes(node_list, tar_path, node_names)` imports an
existing archive file into the selected nodes.

## What it does not do

The package does not create, delete or list clusters, does not discover nodes
or talk to a container engine to find them, and does not write kubeconfig
files. Callers supply the node objects themselves. The only command installed
is `kindtool-version`.