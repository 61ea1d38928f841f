"""JavaScript evaluated inside the profiler page.

The profiler exposes its redux store and derived data on ``window``
(``selectors``, ``getState``, ``dispatch``, ``actions``, ``callTree``,
``filteredThread``, ``filteredMarkers``). These snippets only read that state
or dispatch existing actions; every result is a plain JSON-able object.
"""

# Readiness flags

PROFILE_LOADED = """() => {
  return window.selectors && selectors.app.getView(getState()).phase == "DATA_LOADED";
}"""

SYMBOLICATION_DONE = """() => {
  return selectors.profile.getSymbolicationStatus(getState()) == "DONE";
}"""

# UI actions

PREPARE_CALL_TREE = """({ inverted }) => {
  window.dispatch(window.actions.changeInvertCallstack(inverted));
  window.dispatch(window.actions.changeSelectedTab("calltree"));
  return { inverted };
}"""

FOCUS_FUNCTION = """({ functionName }) => {
  const dispatch = window.dispatch;
  const actions = window.actions;
  const threadsKey = selectors.urlState.getSelectedThreadsKey(getState());
  const thread = selectors.selectedThread.getFilteredThread(getState());
  const { funcTable, stringTable } = thread;

  let funcIndex = null;
  for (let i = 0; i < funcTable.length; i++) {
    if (stringTable.getString(funcTable.name[i]) === functionName) {
      funcIndex = i;
      break;
    }
  }

  if (funcIndex === null) {
    return {
      threadsKey,
      error: `Function "${functionName}" not found in function table`,
      rootNodeCount: 0,
    };
  }

  dispatch(actions.addTransformToStack(threadsKey, { type: "focus-function", funcIndex }));

  const transforms = selectors.urlState.getTransformStack(getState(), threadsKey);
  const rootNodes = window.callTree.getRoots();
  return {
    threadsKey,
    transforms,
    functionName,
    funcIndex,
    rootNodeCount: rootNodes ? rootNodes.length : 0,
  };
}"""

FILTER_BY_MARKER = """({ search }) => {
  const threadsKey = selectors.urlState.getSelectedThreadsKey(getState());
  window.dispatch(
    window.actions.addTransformToStack(threadsKey, {
      type: "filter-samples",
      filterType: "marker-search",
      filter: search,
    })
  );
  return { threadsKey, filter: search };
}"""

# Extraction

CALL_TREE_ROOTS = """({ topN, detailed }) => {
  const rootNodes = callTree.getRoots();
  if (!rootNodes || rootNodes.length === 0) {
    return { totalNodes: 0, nodes: [] };
  }

  function collectCallPaths(nodeIndex, currentPath) {
    const nodeData = callTree.getNodeData(nodeIndex);
    if (!nodeData || !nodeData.funcName) {
      return [];
    }
    const newPath = [...currentPath, nodeData.funcName];
    const children = callTree.getChildren(nodeIndex);
    if (!children || children.length === 0) {
      return [{ stack: newPath, samples: nodeData.total || nodeData.self || 0 }];
    }
    const results = [];
    for (const child of children) {
      results.push(...collectCallPaths(child, newPath));
    }
    return results;
  }

  const allNodes = [];
  for (const rootNode of rootNodes) {
    const nodeData = callTree.getNodeData(rootNode);
    if (!nodeData || !nodeData.funcName) {
      continue;
    }
    allNodes.push({
      index: rootNode,
      name: nodeData.funcName,
      selfTime: nodeData.self || 0,
      totalTime: nodeData.total || 0,
    });
  }

  allNodes.sort((a, b) => b.selfTime - a.selfTime);
  const nodes = allNodes.slice(0, topN).map((node) => {
    const out = {
      name: node.name,
      selfTime: node.selfTime,
      totalTime: node.totalTime,
      stack: [node.name],
    };
    if (detailed) {
      out.callPaths = collectCallPaths(node.index, []);
    }
    return out;
  });

  return { totalNodes: allNodes.length, nodes };
}"""

FLAME_TREE = """({ maxDepth }) => {
  const rootNodes = callTree.getRoots();
  if (!rootNodes || rootNodes.length === 0) {
    return { roots: [] };
  }

  function buildFlameTree(nodeIndex, depth) {
    if (maxDepth !== null && depth >= maxDepth) {
      return null;
    }
    const nodeData = callTree.getNodeData(nodeIndex);
    if (!nodeData || !nodeData.funcName) {
      return null;
    }
    const node = {
      name: nodeData.funcName,
      selfTime: nodeData.self || 0,
      totalTime: nodeData.total || 0,
      children: [],
    };
    const children = callTree.getChildren(nodeIndex) || [];
    for (const childIndex of children) {
      const child = buildFlameTree(childIndex, depth + 1);
      if (child) {
        node.children.push(child);
      }
    }
    return node;
  }

  const roots = [];
  for (const rootNode of rootNodes) {
    const tree = buildFlameTree(rootNode, 0);
    if (tree) {
      roots.push(tree);
    }
  }
  return { roots };
}"""

MARKERS = """() => {
  const filteredMarkers = window.filteredMarkers;
  const stringTable = window.filteredThread.stringTable;
  const markers = [];

  for (let i = 0; i < filteredMarkers.length; i++) {
    const marker = filteredMarkers[i];
    let data = null;
    if (marker.data) {
      data = {};
      for (const key of Object.keys(marker.data)) {
        if (key === "cause" || key === "stack") {
          continue;
        }
        data[key] = marker.data[key];
      }
      if (typeof marker.data.name === "number") {
        data.name = stringTable.getString(marker.data.name);
      }
    }
    markers.push({
      name: marker.name,
      start: marker.start ?? null,
      startTime: marker.startTime ?? null,
      end: marker.end ?? null,
      data,
    });
  }

  return { markers };
}"""

SAMPLES = """({ start, end }) => {
  const state = getState();
  const thread = selectors.selectedThread.getFilteredThread(state);
  const { samples, stackTable, frameTable, funcTable, stringTable } = thread;
  const categoryList = selectors.profile.getCategories(state);
  const time = [];
  const category = [];
  const func = [];

  if (!samples || !samples.stack || !stackTable || !categoryList) {
    return { time, category, func };
  }

  let sampleTime = 0;
  for (let i = 0; i < samples.length; i++) {
    sampleTime = samples.time ? samples.time[i] : sampleTime + samples.timeDeltas[i];
    if (sampleTime < start || sampleTime > end) {
      continue;
    }
    const stackIndex = samples.stack[i];
    if (stackIndex === null || stackIndex === undefined) {
      continue;
    }

    let categoryName = null;
    const categoryIndex = stackTable.category[stackIndex];
    if (categoryIndex !== null && categoryIndex !== undefined && categoryList[categoryIndex]) {
      categoryName = categoryList[categoryIndex].name || null;
    }

    let funcName = null;
    const frameIndex = stackTable.frame[stackIndex];
    if (frameIndex !== null && frameIndex !== undefined) {
      const funcIndex = frameTable.func[frameIndex];
      if (funcIndex !== null && funcIndex !== undefined) {
        funcName = stringTable.getString(funcTable.name[funcIndex]);
      }
    }

    time.push(sampleTime);
    category.push(categoryName);
    func.push(funcName);
  }

  return { time, category, func };
}"""

FUNCTION_DETAILS = """({ functionName }) => {
  const state = getState();
  const thread = selectors.selectedThread.getFilteredThread(state);
  const { funcTable, frameTable, stackTable, samples, stringTable, resourceTable } = thread;

  let funcIndex = null;
  for (let i = 0; i < funcTable.length; i++) {
    if (stringTable.getString(funcTable.name[i]) === functionName) {
      funcIndex = i;
      break;
    }
  }
  if (funcIndex === null) {
    return { found: false };
  }

  let lib = null;
  const profile = selectors.profile.getProfile(state);
  const resourceIndex = funcTable.resource[funcIndex];
  if (resourceIndex !== null && resourceIndex !== undefined && resourceIndex >= 0) {
    const libIndex = resourceTable.lib[resourceIndex];
    if (libIndex !== null && libIndex !== undefined && profile.libs[libIndex]) {
      const l = profile.libs[libIndex];
      lib = {
        name: l.name,
        debugName: l.debugName,
        debugId: l.breakpadId,
        codeId: l.codeId || null,
        arch: l.arch || null,
      };
    }
  }

  const fileIndex = funcTable.fileName[funcIndex];
  const fileName = fileIndex !== null && fileIndex !== undefined ? stringTable.getString(fileIndex) : null;

  let symbolAddress = null;
  let symbolSize = null;
  const nativeSymbols = thread.nativeSymbols;
  const addressToLine = {};
  for (let f = 0; f < frameTable.length; f++) {
    if (frameTable.func[f] !== funcIndex) {
      continue;
    }
    const address = frameTable.address[f];
    const line = frameTable.line[f];
    if (address !== null && address !== -1 && line !== null && line !== undefined) {
      addressToLine[address] = line;
    }
    if (symbolAddress === null && nativeSymbols && frameTable.nativeSymbol) {
      const symbolIndex = frameTable.nativeSymbol[f];
      if (symbolIndex !== null && symbolIndex !== undefined) {
        symbolAddress = nativeSymbols.address[symbolIndex];
        symbolSize = nativeSymbols.functionSize ? nativeSymbols.functionSize[symbolIndex] ?? null : null;
      }
    }
  }

  const selfByAddress = {};
  const selfByLine = {};
  let selfSamples = 0;
  let totalSamples = 0;
  for (let i = 0; i < samples.length; i++) {
    const stackIndex = samples.stack[i];
    if (stackIndex === null || stackIndex === undefined) {
      continue;
    }
    const weight = samples.weight ? samples.weight[i] : 1;
    const frame = stackTable.frame[stackIndex];
    if (frameTable.func[frame] === funcIndex) {
      selfSamples += weight;
      const address = frameTable.address[frame];
      if (address !== null && address !== -1) {
        selfByAddress[address] = (selfByAddress[address] || 0) + weight;
      }
      const line = frameTable.line[frame];
      if (line !== null && line !== undefined) {
        selfByLine[line] = (selfByLine[line] || 0) + weight;
      }
    }
    for (let s = stackIndex; s !== null && s !== undefined; s = stackTable.prefix[s]) {
      if (frameTable.func[stackTable.frame[s]] === funcIndex) {
        totalSamples += weight;
        break;
      }
    }
  }

  return {
    found: true,
    funcIndex,
    name: functionName,
    fileName,
    lib,
    symbolAddress,
    symbolSize,
    selfSamples,
    totalSamples,
    selfByAddress,
    selfByLine,
    addressToLine,
  };
}"""
