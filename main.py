import asyncio

from src.queryspace.actions import UpdateQueryText
from src.queryspace.memory_backend import InMemoryBackend
from src.queryspace.session import close_session, open_session


async def async_main():
    print("--- 1. Open Session ---")
    backend = InMemoryBackend(latency=0.01)
    session = await open_session(backend, "settings.json", configure_logging=True)
    workspace = session.workspace

    def on_change(action):
        print(f"[Event] {type(action).__name__ if action else 'batch'}")
    workspace.state_changed.connect(on_change)

    print("--- 2. Create Unsaved Queries ---")
    first = await workspace.create_unsaved_query()
    second = await workspace.create_unsaved_query()
    print(f"Tabs: {workspace.tabs.tab_ids}, active: {workspace.tabs.active_tab_id}")

    print("--- 3. Edit & Save (promotion) ---")
    workspace.dispatch(UpdateQueryText(first, "select * from sales"))
    outcome = await workspace.save_query(first)
    print(f"Save: {outcome.status.value}, node: {outcome.node_id}")

    print("--- 4. Folders & Moves ---")
    folder = await workspace.create_folder(workspace.saved_tree.root_id, "Reports")
    if folder and outcome.node_id:
        code, committed = await workspace.move_query_node(outcome.node_id, folder.node_id)
        print(f"Move: {code.name}, committed={committed}")
    await workspace.refresher.flush()

    print("--- 5. Close Unsaved Tab ---")
    tab = workspace.tabs.tab_for_mount(second)
    if tab:
        await workspace.close_tab(tab.tab_id)
    print(f"Records: {list(workspace.records.records)}")

    print("--- 6. Cleanup ---")
    await close_session(session)


def main():
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
