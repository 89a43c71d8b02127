import argparse
import json
import sys
import threading
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from . import api, config
from .client import DriveClient
from .commands import (
    DeletePermanently,
    MoveToBin,
    Rename,
    Restore,
    Star,
    Unstar,
    execute_batch,
    move_items,
)
from .errors import NetraError, SessionExpiredError
from .models import FileItem, Folder, FolderNode, LocalFile
from .session_store import Session, delete_session, load_session, save_session
from .tasks import TaskPoller
from .tree import compute_disabled_targets
from .uploads import UploadQueue, UploadStatus
from .utils import get_logger

logger = get_logger('netra.cli')

_BATCH_COMMANDS = {
    'star': Star,
    'unstar': Unstar,
    'bin': MoveToBin,
    'restore': Restore,
    'rm': DeletePermanently,
}


def _add_item_args(p: argparse.ArgumentParser) -> None:
    p.add_argument('--file', dest='files', action='append', default=[], metavar='ID')
    p.add_argument('--folder', dest='folders', action='append', default=[], metavar='ID')


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog='netra')
    p.add_argument('--session', default=config.session_path())
    sub = p.add_subparsers(dest='cmd', required=True)

    auth = sub.add_parser('auth')
    auth_sub = auth.add_subparsers(dest='auth_cmd', required=True)
    login = auth_sub.add_parser('login')
    login.add_argument('username')
    login.add_argument('password')
    auth_sub.add_parser('logout')
    signup = auth_sub.add_parser('signup')
    signup.add_argument('username')
    signup.add_argument('email')
    signup.add_argument('password')
    verify = auth_sub.add_parser('verify')
    verify.add_argument('token')
    forgot = auth_sub.add_parser('forgot')
    forgot.add_argument('email')
    reset = auth_sub.add_parser('reset')
    reset.add_argument('token')
    reset.add_argument('new_password')

    usage = sub.add_parser('usage')
    usage.add_argument('--json', action='store_true')

    ls = sub.add_parser('ls')
    ls.add_argument('folder_id', nargs='?')
    ls.add_argument('--starred', action='store_true')
    ls.add_argument('--bin', action='store_true')
    ls.add_argument('--json', action='store_true')

    tree = sub.add_parser('tree')
    tree.add_argument('--moving', action='append', default=[], metavar='FOLDER_ID',
                      help='mark the targets a move of these folders may not use')

    mkdir = sub.add_parser('mkdir')
    mkdir.add_argument('name')
    mkdir.add_argument('--parent')

    upload = sub.add_parser('upload')
    upload.add_argument('paths', nargs='+')
    upload.add_argument('--to', dest='folder_id')

    mv = sub.add_parser('mv')
    _add_item_args(mv)
    mv.add_argument('--to', dest='target', default=None, help='destination folder id, or "root"')

    for name in _BATCH_COMMANDS:
        _add_item_args(sub.add_parser(name))

    rename = sub.add_parser('rename')
    rename.add_argument('kind', choices=['file', 'folder'])
    rename.add_argument('item_id')
    rename.add_argument('new_name')

    search = sub.add_parser('search')
    search.add_argument('query')
    search.add_argument('--json', action='store_true')

    share = sub.add_parser('share')
    share.add_argument('file_id')

    download = sub.add_parser('download')
    download.add_argument('file_id')
    download.add_argument('--out', required=True)

    tasks = sub.add_parser('tasks')
    tasks.add_argument('--watch', action='store_true')

    cancel = sub.add_parser('cancel-task')
    cancel.add_argument('task_id')

    return p


def _items_from_args(args: argparse.Namespace) -> List[Any]:
    items: List[Any] = [Folder(id=i, name='') for i in args.folders]
    items.extend(FileItem(id=i, name='') for i in args.files)
    if not items:
        raise SystemExit('Give at least one --file or --folder id')
    return items


def _print_tree(nodes: List[FolderNode], disabled: frozenset, depth: int = 0) -> None:
    for node in nodes:
        mark = ' [x]' if node.id in disabled else ''
        print(f"{'  ' * depth}{node.name}\t{node.id}{mark}")
        _print_tree(list(node.children), disabled, depth + 1)


def _print_task(task: Any) -> None:
    cancel = ' (cancellable)' if task.can_cancel else ''
    print(
        f"{task.task_id}\t{task.status}\t{task.progress_percent:.0f}%\t"
        f"{task.transferred_hr}/{task.total_hr}\tETA {task.eta_friendly}\t{task.file_name}{cancel}"
    )


def _run_upload(client: DriveClient, paths: List[str], folder_id: Optional[str]) -> int:
    queue = UploadQueue(client)
    reported: Dict[int, UploadStatus] = {}
    lock = threading.Lock()

    def on_change(items: List[Any]) -> None:
        with lock:
            for item in items:
                if reported.get(item.id) is item.status:
                    continue
                reported[item.id] = item.status
                suffix = f": {item.error}" if item.error else ''
                print(f"{item.id}\t{item.status.value}\t{item.file.name}{suffix}")

    queue.on_change(on_change)
    result = queue.enqueue([LocalFile.from_path(p) for p in paths], folder_id)
    for err in result.rejected:
        print(f"Rejected: {err}", file=sys.stderr)
    try:
        queue.join()
    except KeyboardInterrupt:
        queue.clear()
        queue.join(timeout=5)
        return 1
    failed = [s for s in reported.values() if s is UploadStatus.ERROR]
    return 1 if failed or result.rejected else 0


def _watch_tasks(client: DriveClient) -> int:
    user_id = client.session.user_id()
    if not user_id:
        raise SystemExit('Not logged in')

    def on_tasks(tasks: List[Any]) -> None:
        print(f"--- {len(tasks)} task(s)")
        for task in tasks:
            _print_task(task)

    def on_error(exc: Exception) -> None:
        print(f"Could not update tasks: {exc}", file=sys.stderr)
        if isinstance(exc, SessionExpiredError):
            done.set()

    done = threading.Event()
    poller = TaskPoller(client, user_id, on_tasks=on_tasks, on_error=on_error)
    poller.start()
    try:
        done.wait()
    except KeyboardInterrupt:
        pass
    finally:
        poller.stop()
    return 0


def _dispatch(args: argparse.Namespace, client: DriveClient) -> int:
    if args.cmd == 'auth':
        if args.auth_cmd == 'login':
            api.login(client, args.username, args.password)
            print('OK: logged in')
        elif args.auth_cmd == 'logout':
            api.logout(client)
            delete_session(args.session)
            print('OK: logged out')
        elif args.auth_cmd == 'signup':
            api.signup(client, args.username, args.email, args.password)
            print('OK: check your inbox to verify the email address')
        elif args.auth_cmd == 'verify':
            api.verify_email(client, args.token)
            print('OK: email verified')
        elif args.auth_cmd == 'forgot':
            api.forgot_password(client, args.email)
            print('OK: reset instructions sent')
        elif args.auth_cmd == 'reset':
            api.reset_password(client, args.token, args.new_password)
            print('OK: password changed')
        return 0

    if args.cmd == 'usage':
        usage = api.get_storage_usage(client)
        if args.json:
            print(json.dumps(asdict(usage), indent=2))
        else:
            print(f"Used {usage.total_usage_bytes} bytes")
        return 0

    if args.cmd == 'ls':
        folders = api.list_folders(client, args.folder_id, include_deleted=args.bin, is_starred=args.starred)
        files = api.list_files(client, args.folder_id, include_deleted=args.bin, is_starred=args.starred)
        if args.json:
            print(json.dumps({'folders': [asdict(f) for f in folders], 'files': [asdict(f) for f in files]}, indent=2))
        else:
            for folder in folders:
                print(f"{folder.id}\tfolder\t-\t{folder.name}")
            for item in files:
                print(f"{item.id}\tfile\t{item.size}\t{item.name}")
        return 0

    if args.cmd == 'tree':
        nodes = api.get_folder_tree(client)
        moving = [Folder(id=i, name='') for i in args.moving]
        _print_tree(nodes, compute_disabled_targets(nodes, moving))
        return 0

    if args.cmd == 'mkdir':
        folder = api.create_folder(client, args.name, args.parent)
        print(folder.id)
        return 0

    if args.cmd == 'upload':
        return _run_upload(client, args.paths, args.folder_id)

    if args.cmd == 'mv':
        result = move_items(client, _items_from_args(args), args.target)
        print(f"{len(result.succeeded)} item(s) moved.")
        for item, exc in result.failed:
            print(f"Failed to move {item.id}: {exc}", file=sys.stderr)
        return 0 if result.ok else 1

    if args.cmd in _BATCH_COMMANDS:
        result = execute_batch(client, _items_from_args(args), _BATCH_COMMANDS[args.cmd]())
        print(f"{len(result.succeeded)} item(s) done.")
        for item, exc in result.failed:
            print(f"Failed on {item.id}: {exc}", file=sys.stderr)
        return 0 if result.ok else 1

    if args.cmd == 'rename':
        item = Folder(id=args.item_id, name='') if args.kind == 'folder' else FileItem(id=args.item_id, name='')
        result = execute_batch(client, [item], Rename(args.new_name))
        if not result.ok:
            print(f"Rename failed: {result.failed[0][1]}", file=sys.stderr)
            return 1
        print('OK')
        return 0

    if args.cmd == 'search':
        found = api.search(client, args.query)
        if args.json:
            print(json.dumps(asdict(found), indent=2))
        else:
            for folder in found.folders:
                print(f"{folder.id}\tfolder\t{folder.name}")
            for item in found.files:
                print(f"{item.id}\tfile\t{item.name}")
        return 0

    if args.cmd == 'share':
        print(api.generate_share_link(client, args.file_id).url)
        return 0

    if args.cmd == 'download':
        Path(args.out).write_bytes(api.download_file(client, args.file_id))
        print(f"OK: saved to {args.out}")
        return 0

    if args.cmd == 'tasks':
        if args.watch:
            return _watch_tasks(client)
        user_id = client.session.user_id()
        if not user_id:
            raise SystemExit('Not logged in')
        for task in api.get_tasks(client, user_id):
            _print_task(task)
        return 0

    if args.cmd == 'cancel-task':
        api.cancel_task(client, args.task_id)
        print('OK: task cancellation requested')
        return 0

    return 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    session = Session()
    if Path(args.session).exists() and not (args.cmd == 'auth' and args.auth_cmd == 'login'):
        session = load_session(args.session)
    before = session.tokens()

    client = DriveClient(session=session)
    try:
        return _dispatch(args, client)
    except SessionExpiredError as exc:
        delete_session(args.session)
        print(f"{exc}", file=sys.stderr)
        return 2
    except (NetraError, httpx.HTTPError, OSError) as exc:
        logger.debug("Command %s failed", args.cmd, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        if session.is_authenticated() and session.tokens() != before:
            save_session(args.session, session)
        client.close()


if __name__ == '__main__':
    raise SystemExit(main())
